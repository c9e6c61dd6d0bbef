"""Generic tenant-scoped CRUD manager for service-layer boilerplate reduction."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from fastapi import HTTPException

from app.services.common import coerce_uuid
from app.services.response import ListResponseMixin

TModel = TypeVar("TModel")


class TenantCRUDManager(ListResponseMixin, Generic[TModel]):
    """Reusable CRUD primitives for models carrying a ``tenant_id`` column."""

    model: type[TModel] | None = None
    not_found_detail: str = "Resource not found"
    soft_delete_field: str | None = None
    soft_delete_value = False

    @classmethod
    def _require_model(cls) -> type[TModel]:
        if cls.model is None:
            raise RuntimeError(f"{cls.__name__}.model must be set")
        return cls.model

    @classmethod
    def _payload_dict(cls, payload: Any, *, exclude_unset: bool) -> dict[str, Any]:
        return payload.model_dump(exclude_unset=exclude_unset)

    @classmethod
    def _get_or_404(cls, db, tenant_id, entity_id):
        # app.services.network imports this module at package import time.
        from app.services.network._common import get_for_tenant

        model = cls._require_model()
        entity = get_for_tenant(db, model, entity_id, tenant_id, detail=cls.not_found_detail)
        # Treat soft-deleted rows as not found for get/update/delete.
        if cls.soft_delete_field and getattr(entity, cls.soft_delete_field) == cls.soft_delete_value:
            raise HTTPException(status_code=404, detail=cls.not_found_detail)
        return entity

    @classmethod
    def create(cls, db, tenant_id, payload):
        model = cls._require_model()
        data = cls._payload_dict(payload, exclude_unset=False)
        data["tenant_id"] = coerce_uuid(tenant_id)
        entity = model(**data)
        db.add(entity)
        db.commit()
        db.refresh(entity)
        return entity

    @classmethod
    def get(cls, db, tenant_id, entity_id):
        return cls._get_or_404(db, tenant_id, entity_id)

    @classmethod
    def update(cls, db, tenant_id, entity_id, payload):
        entity = cls._get_or_404(db, tenant_id, entity_id)
        for key, value in cls._payload_dict(payload, exclude_unset=True).items():
            setattr(entity, key, value)
        db.commit()
        db.refresh(entity)
        return entity
