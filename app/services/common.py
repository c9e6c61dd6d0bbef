"""Shared helpers for the service layer: id parsing, ordering, paging."""

from __future__ import annotations

import uuid

from fastapi import HTTPException


def coerce_uuid(value):
    """Parse ``value`` as a UUID; None passes through.

    Raises:
        HTTPException: 400 if value is not a valid UUID
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid id: {value}") from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    """Order ``query`` by one of ``allowed_columns``; unknown names are a 400."""
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc(), *_tiebreak(query))
    return query.order_by(column.asc(), *_tiebreak(query))


def _tiebreak(query) -> list:
    # Stable pages: rows with equal sort keys come back in id order.
    entity = query.column_descriptions[0].get("entity") if query.column_descriptions else None
    pk = getattr(entity, "id", None)
    return [pk.asc()] if pk is not None else []


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)
