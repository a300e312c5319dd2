"""FastAPI dependencies wrapping the authorization guards."""

from fastapi import Depends, Request

from crm_auth.middleware.auth import (
    require_auth,
    require_permission,
    require_platform_admin,
    require_tenant_auth,
)
from crm_auth.services.session_validator import AuthContext


async def get_auth_context(request: Request) -> AuthContext:
    return await require_auth(request)


async def get_tenant_context(request: Request, tenant: str) -> AuthContext:
    """Context for routes under ``/{tenant}/``; the path value may be a slug or an id."""
    return await require_tenant_auth(request, tenant)


def permission_required(resource: str, action: str):
    async def checker(context: AuthContext = Depends(get_tenant_context)) -> AuthContext:
        return require_permission(context, resource, action)

    return checker


async def platform_admin_required(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
    return require_platform_admin(context)
