"""Access token handling.

Tokens are HS256 JWTs carrying the caller's ``tenant_id``. The auth service
normally issues them; ``issue_access_token`` exists for operator scripts and
tests.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, cast

from fastapi import HTTPException
from jose import JWTError, jwt

from app.config import settings


def _now() -> datetime:
    return datetime.now(UTC)


def _jwt_secret() -> str:
    secret = settings.jwt_secret
    if not secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return secret


def _jwt_algorithm() -> str:
    return settings.jwt_algorithm or "HS256"


def issue_access_token(
    tenant_id: str,
    subject: str,
    roles: list[str] | None = None,
    ttl_minutes: int | None = None,
) -> str:
    now = _now()
    ttl = ttl_minutes if ttl_minutes is not None else settings.jwt_access_ttl_minutes
    payload: dict[str, Any] = {
        "sub": subject,
        "tenant_id": str(tenant_id),
        "typ": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    if roles:
        payload["roles"] = roles
    return cast(str, jwt.encode(payload, _jwt_secret(), algorithm=_jwt_algorithm()))


def _decode_jwt(token: str, expected_type: str) -> dict:
    try:
        payload = cast(
            dict[Any, Any],
            jwt.decode(token, _jwt_secret(), algorithms=[_jwt_algorithm()]),
        )
    except JWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    if payload.get("typ") != expected_type:
        raise HTTPException(status_code=401, detail="Invalid token type")
    return payload


def decode_access_token(token: str) -> dict:
    return _decode_jwt(token, "access")
