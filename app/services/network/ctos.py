"""CTO and CTO group management services."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.models.network import Cto, CtoGroup
from app.schemas.network import CtoCreate, CtoGroupCreate, CtoGroupUpdate, CtoUpdate
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.crud import TenantCRUDManager
from app.services.network._common import get_for_tenant
from app.services.network.capacity import capacity_ledger
from app.services.network.exceptions import CtoHasReservedPorts
from app.services.network.geo import validate_coordinate
from app.services.query_builders import (
    apply_active_state,
    apply_optional_equals,
    apply_optional_ilike,
    apply_tenant_scope,
)

logger = logging.getLogger(__name__)


def _check_group(db: Session, tenant_id, group_id) -> None:
    if group_id is not None:
        get_for_tenant(db, CtoGroup, group_id, tenant_id, detail="CTO group not found")


class CtoGroups(TenantCRUDManager[CtoGroup]):
    model = CtoGroup
    not_found_detail = "CTO group not found"

    @staticmethod
    def list(
        db: Session,
        tenant_id: UUID | str,
        order_by: str = "name",
        order_dir: str = "asc",
        limit: int = 100,
        offset: int = 0,
        name: str | None = None,
    ):
        query = apply_tenant_scope(db.query(CtoGroup), CtoGroup.tenant_id, tenant_id)
        query = apply_optional_ilike(query, {CtoGroup.name: name})
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": CtoGroup.created_at, "name": CtoGroup.name},
        )
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def create(cls, db: Session, tenant_id: UUID | str, payload: CtoGroupCreate):
        try:
            return super().create(db, tenant_id, payload)
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(
                status_code=409, detail=f"CTO group '{payload.name}' already exists"
            ) from exc

    @classmethod
    def update(cls, db: Session, tenant_id: UUID | str, group_id: str, payload: CtoGroupUpdate):
        try:
            return super().update(db, tenant_id, group_id, payload)
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(status_code=409, detail="CTO group name already in use") from exc

    @classmethod
    def delete(cls, db: Session, tenant_id: UUID | str, group_id: str):
        """Delete a group; its CTOs become ungrouped."""
        group = cls.get(db, tenant_id, group_id)
        ungrouped = db.execute(
            update(Cto)
            .where(Cto.group_id == group.id, Cto.tenant_id == group.tenant_id)
            .values(group_id=None)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.delete(group)
        db.commit()
        logger.info("Deleted CTO group %s, %d CTOs ungrouped", group_id, ungrouped)


class Ctos(TenantCRUDManager[Cto]):
    model = Cto
    not_found_detail = "CTO not found"
    soft_delete_field = "is_active"
    soft_delete_value = False

    @staticmethod
    def list(
        db: Session,
        tenant_id: UUID | str,
        order_by: str = "name",
        order_dir: str = "asc",
        limit: int = 100,
        offset: int = 0,
        name: str | None = None,
        group_id: str | None = None,
        is_active: bool | None = None,
    ):
        query = db.query(Cto).options(selectinload(Cto.group))
        query = apply_tenant_scope(query, Cto.tenant_id, tenant_id)
        query = apply_optional_ilike(query, {Cto.name: name})
        query = apply_optional_equals(query, {Cto.group_id: coerce_uuid(group_id)})
        query = apply_active_state(query, Cto.is_active, is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Cto.created_at, "name": Cto.name, "used_ports": Cto.used_ports},
        )
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def create(cls, db: Session, tenant_id: UUID | str, payload: CtoCreate):
        validate_coordinate(payload.latitude, payload.longitude)
        _check_group(db, tenant_id, payload.group_id)
        cto = super().create(db, tenant_id, payload)
        logger.info("Created CTO %s (%s) with %d ports", cto.id, cto.name, cto.total_ports)
        return cto

    @classmethod
    def update(cls, db: Session, tenant_id: UUID | str, cto_id: str, payload: CtoUpdate):
        cto = cls.get(db, tenant_id, cto_id)
        data = payload.model_dump(exclude_unset=True)
        if "latitude" in data or "longitude" in data:
            validate_coordinate(
                data.get("latitude", cto.latitude), data.get("longitude", cto.longitude)
            )
        if "group_id" in data:
            _check_group(db, tenant_id, data["group_id"])
        total_ports = data.pop("total_ports", None)
        if total_ports is not None and total_ports != cto.total_ports:
            capacity_ledger.resize(db, tenant_id, cto.id, total_ports, commit=False)
        for key, value in data.items():
            setattr(cto, key, value)
        db.commit()
        db.refresh(cto)
        return cto

    @classmethod
    def delete(cls, db: Session, tenant_id: UUID | str, cto_id: str):
        """Soft delete a CTO; rejected while any port is reserved."""
        cto = cls.get(db, tenant_id, cto_id)
        result = db.execute(
            update(Cto)
            .where(Cto.id == cto.id, Cto.tenant_id == cto.tenant_id, Cto.used_ports == 0)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.refresh(cto)
            raise CtoHasReservedPorts(
                f"CTO {cto.name} still has {cto.used_ports} reserved ports",
                used_ports=cto.used_ports,
            )
        db.commit()
        logger.info("Deactivated CTO %s", cto.id)


cto_groups = CtoGroups()
ctos = Ctos()

__all__ = ["CtoGroups", "cto_groups", "Ctos", "ctos"]
