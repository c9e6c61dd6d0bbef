def list_response(items: list, limit: int, offset: int) -> dict:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    @classmethod
    def list_response(cls, db, tenant_id, *, limit: int, offset: int, **filters):
        items = cls.list(db, tenant_id, limit=limit, offset=offset, **filters)
        return list_response(items, limit, offset)
