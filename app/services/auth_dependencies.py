import logging
from dataclasses import dataclass, field
from uuid import UUID

from fastapi import Header, HTTPException, Request

from app.services.auth_flow import decode_access_token
from app.services.common import coerce_uuid
from app.services.network.exceptions import TenantMismatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    tenant_id: UUID
    subject: str
    roles: tuple[str, ...] = field(default_factory=tuple)


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def _token_tenant(payload: dict) -> UUID:
    raw = payload.get("tenant_id")
    if not raw:
        raise HTTPException(status_code=401, detail="Token has no tenant")
    try:
        return UUID(str(raw))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid tenant in token") from exc


def require_tenant(
    request: Request,
    authorization: str | None = Header(default=None),
    x_tenant_id: str | None = Header(default=None),
) -> TenantContext:
    """Resolve the calling tenant from the bearer token.

    An explicit ``X-Tenant-ID`` header must name the same tenant as the token.
    """
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    payload = decode_access_token(token)
    tenant_id = _token_tenant(payload)
    if x_tenant_id is not None and coerce_uuid(x_tenant_id) != tenant_id:
        logger.warning(
            "Tenant mismatch: token for tenant %s sent X-Tenant-ID %s",
            tenant_id,
            x_tenant_id,
            extra={"tenant_id": str(tenant_id)},
        )
        raise TenantMismatch("X-Tenant-ID does not match the access token")
    roles = payload.get("roles") or []
    context = TenantContext(
        tenant_id=tenant_id,
        subject=str(payload.get("sub")),
        roles=tuple(str(role) for role in roles),
    )
    request.state.tenant_id = str(tenant_id)
    request.state.actor_id = context.subject
    return context
