"""
Session Validator

Turns an opaque session token into an AuthContext, or a definite failure
reason. Runs on every protected request and reads the store each time, so a
revoked role or deactivated user is seen by the next validation.

Check order:
    a. token missing or malformed       -> INVALID
    b. no session row for its digest    -> INVALID
    c. expires_at <= now                -> EXPIRED
    d. user or tenant missing/inactive  -> INVALID
    e. no active role grant             -> INVALID
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field, replace

from crm_auth.constants.roles import RoleName
from crm_auth.exceptions import StoreTimeoutError
from crm_auth.models.tenant import Tenant
from crm_auth.models.user import User
from crm_auth.permissions_config.permissions import Permission
from crm_auth.services.permission_service import PermissionService
from crm_auth.stores.credential_store import CredentialStore
from crm_auth.stores.session_store import SessionStore
from crm_auth.stores.tenant_store import TenantStore
from crm_auth.utils.security import is_well_formed_token, token_digest, utcnow

logger = logging.getLogger(__name__)


class SessionFailure(str, enum.Enum):
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass
class AuthContext:
    """Authenticated identity of one request. The only legitimate source of tenant id."""

    user: User
    tenant: Tenant | None  # None for platform admin sessions
    user_role: str
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    session_id: int | None = None

    @property
    def tenant_id(self) -> int | None:
        return self.tenant.id if self.tenant is not None else None

    @property
    def is_platform_admin(self) -> bool:
        return self.user_role == RoleName.PLATFORM_ADMIN.value

    def bind_tenant(self, tenant: Tenant) -> "AuthContext":
        return replace(self, tenant=tenant)


@dataclass
class SessionValidation:
    valid: bool
    context: AuthContext | None = None
    reason: SessionFailure | None = None

    @classmethod
    def ok(cls, context: AuthContext) -> "SessionValidation":
        return cls(valid=True, context=context)

    @classmethod
    def fail(cls, reason: SessionFailure) -> "SessionValidation":
        return cls(valid=False, reason=reason)


class SessionValidator:
    def __init__(
        self,
        sessions: SessionStore,
        credentials: CredentialStore,
        tenants: TenantStore,
        permissions: PermissionService,
        timeout: float | None = None,
    ) -> None:
        self.sessions = sessions
        self.credentials = credentials
        self.tenants = tenants
        self.permissions = permissions
        self.timeout = timeout

    async def validate_session(self, token: str | None) -> SessionValidation:
        """Validate a session token. A validation that times out is reported as INVALID."""
        if not is_well_formed_token(token):
            return SessionValidation.fail(SessionFailure.INVALID)

        try:
            return await asyncio.wait_for(self._validate(token), timeout=self.timeout)
        except (asyncio.TimeoutError, StoreTimeoutError):
            logger.warning("Session validation timed out")
            return SessionValidation.fail(SessionFailure.INVALID)

    async def _validate(self, token: str) -> SessionValidation:
        session = await self.sessions.get_by_session_token(token_digest(token))
        if session is None:
            logger.debug("Session validation failed: no session for token")
            return SessionValidation.fail(SessionFailure.INVALID)

        if session.expires_at <= utcnow():
            logger.debug("Session validation failed: session %d expired", session.id)
            return SessionValidation.fail(SessionFailure.EXPIRED)

        user = await self.credentials.get_user(session.user_id)
        if user is None or not user.is_active:
            logger.info("Session validation failed: user %d missing or inactive", session.user_id)
            return SessionValidation.fail(SessionFailure.INVALID)

        tenant = None
        if not session.is_platform_session:
            tenant = await self.tenants.get_by_id(session.tenant_id)
            if tenant is None or not tenant.is_active:
                logger.info("Session validation failed: tenant %s missing or inactive", session.tenant_id)
                return SessionValidation.fail(SessionFailure.INVALID)

        role, permissions = await self.permissions.get_user_permissions(user.id, session.tenant_id)
        if role is None:
            logger.info("Session validation failed: user %d has no active role in tenant %s", user.id, session.tenant_id)
            return SessionValidation.fail(SessionFailure.INVALID)
        if session.is_platform_session and role != RoleName.PLATFORM_ADMIN.value:
            logger.warning("Platform session %d held by non platform admin %d", session.id, user.id)
            return SessionValidation.fail(SessionFailure.INVALID)

        return SessionValidation.ok(
            AuthContext(user=user, tenant=tenant, user_role=role, permissions=permissions, session_id=session.id)
        )
