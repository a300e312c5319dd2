"""
Authorization Guards

Compose session validation, tenant scoping and role/permission checks in
front of protected operations. The AuthContext returned here is the only
legitimate source of tenant id for downstream handlers; route parameters and
request bodies are never trusted for it.

Every authentication failure surfaces as the same 401 message. Authorization
failures (403) name the unmet requirement.
"""

import logging
from collections.abc import Iterable

from fastapi import Request

from crm_auth.constants.auth import GENERIC_AUTH_FAILURE, SESSION_COOKIE_NAME
from crm_auth.constants.roles import ADMIN_ROLES, RoleName
from crm_auth.exceptions import AuthenticationError, AuthorizationError, ErrorCode
from crm_auth.permissions_config.permissions import Permission
from crm_auth.services.session_validator import AuthContext, SessionValidator

logger = logging.getLogger(__name__)


def extract_session_token(request: Request) -> str | None:
    """Session cookie first, then an ``Authorization: Bearer`` header."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def require_auth(request: Request) -> AuthContext:
    validator: SessionValidator = request.app.state.session_validator
    result = await validator.validate_session(extract_session_token(request))
    if not result.valid:
        logger.info("Authentication failed on %s: %s", request.url.path, result.reason.value)
        raise AuthenticationError(GENERIC_AUTH_FAILURE)

    request.state.auth_context = result.context
    return result.context


def _matches_tenant(context: AuthContext, tenant_ident: str) -> bool:
    tenant = context.tenant
    if tenant is None:
        return False
    return str(tenant.id) == str(tenant_ident) or tenant.slug == tenant_ident


async def require_tenant_auth(request: Request, tenant_ident: str) -> AuthContext:
    """
    Authenticate and confirm the caller acts within ``tenant_ident`` (id or slug).

    Platform admins pass for any active tenant; the returned context is then
    bound to that tenant.
    """
    context = await require_auth(request)

    if context.is_platform_admin and context.tenant is None:
        tenants = request.app.state.tenant_store
        tenant = await tenants.get_by_slug(str(tenant_ident))
        if tenant is None and str(tenant_ident).isdigit():
            tenant = await tenants.get_by_id(int(tenant_ident))
        if tenant is None or not tenant.is_active:
            raise AuthorizationError(
                "Access denied for this tenant", error_code=ErrorCode.AUTH_TENANT_ACCESS_DENIED
            )
        context = context.bind_tenant(tenant)
        request.state.auth_context = context
        return context

    if not _matches_tenant(context, tenant_ident):
        logger.warning(
            "Tenant isolation: user %d (tenant %s) tried to access tenant %s",
            context.user.id,
            context.tenant_id,
            tenant_ident,
        )
        raise AuthorizationError("Access denied for this tenant", error_code=ErrorCode.AUTH_TENANT_ACCESS_DENIED)
    return context


def require_permission(context: AuthContext, resource: str, action: str) -> AuthContext:
    if Permission(resource, action) not in context.permissions:
        raise AuthorizationError(
            f"Permission denied: {resource}:{action} required",
            details={"required_permission": f"{resource}:{action}"},
        )
    return context


def require_role(context: AuthContext, roles: Iterable[str]) -> AuthContext:
    allowed = [role.value if isinstance(role, RoleName) else role for role in roles]
    if context.user_role not in allowed:
        raise AuthorizationError(
            f"Role required: one of {', '.join(allowed)}",
            error_code=ErrorCode.AUTH_ROLE_REQUIRED,
            details={"required_roles": allowed},
        )
    return context


def require_admin(context: AuthContext) -> AuthContext:
    return require_role(context, ADMIN_ROLES)


def require_platform_admin(context: AuthContext) -> AuthContext:
    if not context.is_platform_admin:
        raise AuthorizationError("Platform admin access required", error_code=ErrorCode.AUTH_ROLE_REQUIRED)
    return context
