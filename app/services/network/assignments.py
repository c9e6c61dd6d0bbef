"""Customer to CTO association.

Search and reservation are separate steps: looking up the nearest CTO with a
free port never consumes capacity. ``assign_customer`` walks the candidates
best-first and reserves on the first one that still has room; when another
request takes the last port in between, it moves on to the next candidate.
The walk is bounded by the candidate list, so it always terminates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.metrics import observe_assignment
from app.models.network import Cto, CtoPortAssignment
from app.services.common import coerce_uuid
from app.services.network.capacity import capacity_ledger
from app.services.network.exceptions import (
    CapacityExceeded,
    CtoError,
    CustomerAlreadyAssigned,
)
from app.services.network.geo import validate_coordinate
from app.services.network.spatial import CtoCandidate, nearest_candidates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    customer_id: UUID
    cto: Cto
    port_number: int
    distance_m: float | None = None


def _current_link(db: Session, tenant_id: UUID, customer_id: UUID) -> CtoPortAssignment | None:
    return (
        db.query(CtoPortAssignment)
        .filter(CtoPortAssignment.tenant_id == tenant_id)
        .filter(CtoPortAssignment.customer_id == customer_id)
        .first()
    )


def _lock_statement(cto_id: UUID):
    return select(Cto.id).where(Cto.id == cto_id).with_for_update()


def _lock_ctos(db: Session, cto_ids) -> list[UUID]:
    """Row-lock CTOs in ascending id order, the one order every move uses."""
    ordered = sorted(set(cto_ids))
    for cto_id in ordered:
        db.execute(_lock_statement(cto_id))
    return ordered


def _reserve_and_link(
    db: Session,
    tenant_id: UUID,
    customer_id: UUID,
    cto_id: UUID,
    current: CtoPortAssignment | None,
) -> int:
    """Reserve a port for the customer, moving them off ``current`` if set.

    Nothing is committed here. The new port is taken before the old one is
    freed so a failure leaves the previous assignment in place.
    """
    if current is None:
        return capacity_ledger.reserve_port(
            db, tenant_id, cto_id, customer_id=customer_id, commit=False
        )
    old_cto_id, old_port = current.cto_id, current.port_number
    _lock_ctos(db, [cto_id, old_cto_id])
    port_number = capacity_ledger.reserve_port(db, tenant_id, cto_id, commit=False)
    try:
        capacity_ledger.release_port(db, tenant_id, old_cto_id, old_port, commit=False)
    except CtoError:
        db.rollback()
        raise
    try:
        db.execute(
            update(CtoPortAssignment)
            .where(
                CtoPortAssignment.cto_id == cto_id,
                CtoPortAssignment.port_number == port_number,
            )
            .values(customer_id=customer_id)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        db.rollback()
        raise CustomerAlreadyAssigned(
            "Customer was assigned by another request", customer_id=str(customer_id)
        ) from exc
    logger.info(
        "Moving customer %s from CTO %s port %d to CTO %s port %d",
        customer_id,
        old_cto_id,
        old_port,
        cto_id,
        port_number,
    )
    return port_number


def _commit_link(db: Session, customer_id: UUID) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise CustomerAlreadyAssigned(
            "Customer was assigned by another request", customer_id=str(customer_id)
        ) from exc


class CtoAssignments:
    @staticmethod
    def find_nearest_available(
        db: Session,
        tenant_id: UUID | str,
        latitude: float,
        longitude: float,
    ) -> CtoCandidate | None:
        """Nearest CTO with at least one free port, or None. Read-only."""
        coordinate = validate_coordinate(latitude, longitude)
        for candidate in nearest_candidates(
            db, tenant_id, coordinate, max_distance_m=settings.cto_search_max_m
        ):
            if capacity_ledger.has_free_capacity(candidate.cto):
                return candidate
        return None

    @staticmethod
    def list_candidates(
        db: Session,
        tenant_id: UUID | str,
        latitude: float,
        longitude: float,
        limit: int | None = None,
    ) -> list[CtoCandidate]:
        """Nearest CTOs regardless of capacity, for operator review."""
        coordinate = validate_coordinate(latitude, longitude)
        return list(
            nearest_candidates(
                db,
                tenant_id,
                coordinate,
                limit=limit or settings.cto_candidate_limit,
                max_distance_m=settings.cto_search_max_m,
            )
        )

    @staticmethod
    def get_assignment(
        db: Session, tenant_id: UUID | str, customer_id: UUID | str
    ) -> Assignment | None:
        link = _current_link(db, coerce_uuid(tenant_id), coerce_uuid(customer_id))
        if link is None:
            return None
        return Assignment(customer_id=link.customer_id, cto=link.cto, port_number=link.port_number)

    @staticmethod
    def assign_customer(
        db: Session,
        tenant_id: UUID | str,
        customer_id: UUID | str,
        latitude: float,
        longitude: float,
    ) -> Assignment | None:
        """Assign the customer to the nearest CTO with room.

        Returns None when no CTO in range has a free port. An already
        assigned customer is moved only when a better CTO has room; if none
        does, the current assignment is kept and None is returned.
        """
        tenant_uuid = coerce_uuid(tenant_id)
        customer_uuid = coerce_uuid(customer_id)
        coordinate = validate_coordinate(latitude, longitude)
        current = _current_link(db, tenant_uuid, customer_uuid)

        for candidate in nearest_candidates(
            db, tenant_uuid, coordinate, max_distance_m=settings.cto_search_max_m
        ):
            cto = candidate.cto
            if current is not None and cto.id == current.cto_id:
                observe_assignment("unchanged")
                return Assignment(
                    customer_id=customer_uuid,
                    cto=cto,
                    port_number=current.port_number,
                    distance_m=candidate.distance_m,
                )
            if not capacity_ledger.has_free_capacity(cto):
                continue
            try:
                port_number = _reserve_and_link(db, tenant_uuid, customer_uuid, cto.id, current)
            except CapacityExceeded:
                logger.info(
                    "CTO %s filled up during assignment of customer %s, trying next",
                    cto.id,
                    customer_uuid,
                )
                continue
            _commit_link(db, customer_uuid)
            db.refresh(cto)
            observe_assignment("reassigned" if current is not None else "assigned")
            logger.info(
                "Assigned customer %s to CTO %s port %d (%.1f m)",
                customer_uuid,
                cto.id,
                port_number,
                candidate.distance_m,
                extra={"tenant_id": tenant_uuid},
            )
            return Assignment(
                customer_id=customer_uuid,
                cto=cto,
                port_number=port_number,
                distance_m=candidate.distance_m,
            )

        observe_assignment("not_found")
        logger.info("No CTO with free ports near customer %s", customer_uuid)
        return None

    @staticmethod
    def associate_customer(
        db: Session,
        tenant_id: UUID | str,
        customer_id: UUID | str,
        cto_id: UUID | str,
    ) -> Assignment:
        """Assign the customer to an operator-chosen CTO.

        Raises:
            CapacityExceeded: the chosen CTO is full
        """
        tenant_uuid = coerce_uuid(tenant_id)
        customer_uuid = coerce_uuid(customer_id)
        target_id = coerce_uuid(cto_id)
        current = _current_link(db, tenant_uuid, customer_uuid)
        if current is not None and current.cto_id == target_id:
            return Assignment(
                customer_id=customer_uuid, cto=current.cto, port_number=current.port_number
            )
        port_number = _reserve_and_link(db, tenant_uuid, customer_uuid, target_id, current)
        _commit_link(db, customer_uuid)
        cto = db.get(Cto, target_id)
        observe_assignment("manual")
        logger.info(
            "Customer %s manually assigned to CTO %s port %d",
            customer_uuid,
            target_id,
            port_number,
        )
        return Assignment(customer_id=customer_uuid, cto=cto, port_number=port_number)

    @staticmethod
    def release_customer(db: Session, tenant_id: UUID | str, customer_id: UUID | str) -> bool:
        """Free the customer's port. Returns False when nothing was assigned."""
        customer_uuid = coerce_uuid(customer_id)
        released = capacity_ledger.release_customer_port(db, tenant_id, customer_uuid)
        if released is None:
            return False
        cto_id, port_number = released
        observe_assignment("released")
        logger.info(
            "Released customer %s from CTO %s port %d", customer_uuid, cto_id, port_number
        )
        return True


cto_assignments = CtoAssignments()

__all__ = ["Assignment", "CtoAssignments", "cto_assignments"]
