from fastapi import Depends

from app.db import get_db
from app.services.auth_dependencies import TenantContext, require_tenant


def get_tenant_id(context: TenantContext = Depends(require_tenant)):
    """Tenant id of the authenticated caller."""
    return context.tenant_id


__all__ = [
    "get_db",
    "get_tenant_id",
    "require_tenant",
    "TenantContext",
]
