"""Tenant-scoped lookups shared by the CTO services."""

from __future__ import annotations

import logging
from typing import TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.services.common import coerce_uuid
from app.services.network.exceptions import TenantMismatch

T = TypeVar("T")

logger = logging.getLogger(__name__)


def ensure_same_tenant(entity, tenant_id, label: str) -> None:
    """Raise TenantMismatch when ``entity`` belongs to another tenant."""
    if entity.tenant_id != coerce_uuid(tenant_id):
        logger.warning(
            "Tenant mismatch: tenant %s tried to access %s %s owned by tenant %s",
            tenant_id,
            label,
            entity.id,
            entity.tenant_id,
            extra={"tenant_id": tenant_id},
        )
        raise TenantMismatch(f"{label} belongs to another tenant")


def get_for_tenant(
    db: Session,
    model: type[T],
    entity_id,
    tenant_id,
    detail: str | None = None,
) -> T:
    """Get entity by ID for the calling tenant.

    Raises:
        HTTPException: 404 if entity not found
        TenantMismatch: if the entity belongs to a different tenant
    """
    entity = db.get(model, coerce_uuid(entity_id))
    if not entity:
        raise HTTPException(
            status_code=404,
            detail=detail or f"{model.__name__} not found",
        )
    ensure_same_tenant(entity, tenant_id, model.__name__)
    return entity
