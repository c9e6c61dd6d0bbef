"""Nearest-CTO candidate search.

A linear scan over a tenant's active CTOs is enough for the plant sizes we
manage (hundreds to a few thousand cabinets per ISP). Candidates come out
best-first: ascending distance, ties broken by CTO id.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from app.models.network import Cto
from app.services.common import coerce_uuid
from app.services.network.geo import Coordinate, distance


@dataclass(frozen=True)
class CtoCandidate:
    cto: Cto
    distance_m: float


def _tenant_ctos(db: Session, tenant_id: UUID) -> list[Cto]:
    return (
        db.query(Cto)
        .options(selectinload(Cto.group))
        .filter(Cto.tenant_id == coerce_uuid(tenant_id))
        .filter(Cto.is_active.is_(True))
        .filter(Cto.latitude.isnot(None))
        .filter(Cto.longitude.isnot(None))
        .all()
    )


def nearest_candidates(
    db: Session,
    tenant_id: UUID | str,
    coordinate: Coordinate,
    limit: int | None = None,
    max_distance_m: float | None = None,
) -> Iterator[CtoCandidate]:
    """Yield the tenant's CTOs ordered by distance from ``coordinate``."""
    ranked = []
    for cto in _tenant_ctos(db, tenant_id):
        meters = distance(coordinate, Coordinate(cto.latitude, cto.longitude))
        if max_distance_m is not None and meters > max_distance_m:
            continue
        ranked.append(CtoCandidate(cto=cto, distance_m=meters))
    ranked.sort(key=lambda candidate: (candidate.distance_m, str(candidate.cto.id)))
    if limit is not None:
        ranked = ranked[:limit]
    yield from ranked
