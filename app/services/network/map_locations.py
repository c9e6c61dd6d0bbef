"""Remembered map viewport per tenant."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from app.models.gis import MapLocation
from app.schemas.network import MapLocationCreate
from app.services.common import coerce_uuid
from app.services.network.geo import validate_coordinate


class MapLocations:
    @staticmethod
    def get_last(db: Session, tenant_id: UUID | str) -> MapLocation | None:
        return (
            db.query(MapLocation)
            .filter(MapLocation.tenant_id == coerce_uuid(tenant_id))
            .order_by(MapLocation.created_at.desc(), MapLocation.id.desc())
            .first()
        )

    @staticmethod
    def save(db: Session, tenant_id: UUID | str, payload: MapLocationCreate) -> MapLocation:
        validate_coordinate(payload.latitude, payload.longitude)
        location = MapLocation(tenant_id=coerce_uuid(tenant_id), **payload.model_dump())
        db.add(location)
        db.commit()
        db.refresh(location)
        return location


map_locations = MapLocations()
