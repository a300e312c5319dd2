"""
Authentication Service

Credential verification, session issue and teardown, registration,
invitation acceptance and password change.

Every credential failure (unknown email, missing credential, wrong password,
deactivated user) raises the same InvalidCredentialsError so callers cannot
enumerate accounts. The precise reason is logged server-side only.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from passlib.context import CryptContext

from crm_auth.config import Settings
from crm_auth.constants.roles import RoleName, parse_role
from crm_auth.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ErrorCode,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
    WeakPasswordError,
)
from crm_auth.models.membership import UserTenantRole
from crm_auth.models.tenant import Tenant
from crm_auth.models.user import User
from crm_auth.models.user_session import UserSession
from crm_auth.stores.credential_store import CredentialStore
from crm_auth.stores.invitation_store import InvitationStore
from crm_auth.stores.membership_store import MembershipStore
from crm_auth.stores.session_store import SessionStore
from crm_auth.stores.tenant_store import TenantStore
from crm_auth.utils.password_policy import validate_password_strength
from crm_auth.utils.security import (
    PASSWORD_ALGORITHM,
    generate_token,
    hash_password,
    is_well_formed_token,
    token_digest,
    utcnow,
    verify_password,
)

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user: User
    tenant: Tenant | None
    user_role: UserTenantRole
    session: UserSession
    session_token: str
    refresh_token: str


class AuthService:
    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionStore,
        tenants: TenantStore,
        memberships: MembershipStore,
        invitations: InvitationStore,
        password_context: CryptContext,
        settings: Settings,
    ) -> None:
        self.credentials = credentials
        self.sessions = sessions
        self.tenants = tenants
        self.memberships = memberships
        self.invitations = invitations
        self.password_context = password_context
        self.settings = settings

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _check_password_policy(self, password: str, field: str = "password") -> None:
        validation = validate_password_strength(password, self.settings)
        if not validation.valid:
            raise WeakPasswordError(validation.errors, field=field)

    async def _get_active_tenant(self, tenant_slug: str) -> Tenant:
        tenant = await self.tenants.get_by_slug(tenant_slug)
        if tenant is None or not tenant.is_active:
            raise NotFoundError("Tenant", tenant_slug)
        return tenant

    async def _verify_credentials(self, email: str, password: str) -> User:
        user = await self.credentials.get_user_by_email(email)
        if user is None:
            # Burn the same hashing time as a real verification
            self.password_context.dummy_verify()
            logger.info("Login failed: unknown email")
            raise InvalidCredentialsError()

        credential = await self.credentials.get_credential(user.id)
        if credential is None:
            self.password_context.dummy_verify()
            logger.info("Login failed: user %d has no password credential", user.id)
            raise InvalidCredentialsError()

        if not verify_password(password, credential.password_hash, self.password_context):
            logger.info("Login failed: wrong password for user %d", user.id)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info("Login failed: user %d is deactivated", user.id)
            raise InvalidCredentialsError()

        return user

    async def _create_session(
        self, user_id: int, tenant_id: int | None, ip_address: str | None, user_agent: str | None
    ) -> tuple[UserSession, str, str]:
        session_token = generate_token()
        refresh_token = generate_token()
        now = utcnow()
        session = await self.sessions.create(
            user_id=user_id,
            tenant_id=tenant_id,
            session_token_hash=token_digest(session_token),
            refresh_token_hash=token_digest(refresh_token),
            created_at=now,
            expires_at=now + timedelta(hours=self.settings.session_token_ttl_hours),
            refresh_expires_at=now + timedelta(days=self.settings.refresh_token_ttl_days),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return session, session_token, refresh_token

    # ── Registration ──────────────────────────────────────────────────────────

    async def register_user(
        self, email: str, password: str, name: str, tenant_slug: str, role: str
    ) -> tuple[User, UserTenantRole]:
        """
        Create a user, its credential and an active role in the tenant.

        No session is created.

        Raises:
            ValidationError: weak password, unknown role or platform_admin requested
            NotFoundError: tenant slug does not resolve to an active tenant
            ConflictError: a user with this email already exists
        """
        role_name = parse_role(role)
        if role_name is None:
            raise ValidationError(f"Unknown role: {role}", field="role")
        if role_name is RoleName.PLATFORM_ADMIN:
            raise ValidationError("platform_admin cannot be granted through registration", field="role")

        self._check_password_policy(password)
        tenant = await self._get_active_tenant(tenant_slug)

        password_hash = hash_password(password, self.password_context)
        return await self.credentials.create_user_with_role(
            email=email,
            name=name,
            password_hash=password_hash,
            algorithm=PASSWORD_ALGORITHM,
            tenant_id=tenant.id,
            role=role_name.value,
        )

    async def create_platform_admin(self, email: str, password: str, name: str) -> tuple[User, UserTenantRole]:
        """Provision a user holding the platform-wide platform_admin grant."""
        self._check_password_policy(password)
        password_hash = hash_password(password, self.password_context)
        return await self.credentials.create_user_with_role(
            email=email,
            name=name,
            password_hash=password_hash,
            algorithm=PASSWORD_ALGORITHM,
            tenant_id=None,
            role=RoleName.PLATFORM_ADMIN.value,
        )

    # ── Login / logout ────────────────────────────────────────────────────────

    async def login_user(
        self,
        email: str,
        password: str,
        tenant_slug: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        user = await self._verify_credentials(email, password)
        tenant = await self._get_active_tenant(tenant_slug)

        grant = await self.memberships.get_active_role(user.id, tenant.id)
        if grant is None:
            logger.info("Login refused: user %d has no active role in tenant %d", user.id, tenant.id)
            raise AuthorizationError(
                "User does not have access to this tenant", error_code=ErrorCode.AUTH_TENANT_ACCESS_DENIED
            )

        session, session_token, refresh_token = await self._create_session(user.id, tenant.id, ip_address, user_agent)
        logger.info("User %d logged in to tenant %d (session %d)", user.id, tenant.id, session.id)
        return LoginResult(
            user=user,
            tenant=tenant,
            user_role=grant,
            session=session,
            session_token=session_token,
            refresh_token=refresh_token,
        )

    async def login_platform_admin(
        self, email: str, password: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> LoginResult:
        """Open a platform-wide session (tenant NULL) for a platform admin."""
        user = await self._verify_credentials(email, password)

        grant = await self.memberships.get_active_role(user.id, None)
        if grant is None or grant.role != RoleName.PLATFORM_ADMIN.value:
            logger.warning("Platform admin login refused for user %d", user.id)
            raise AuthorizationError("Platform admin access required", error_code=ErrorCode.AUTH_ROLE_REQUIRED)

        session, session_token, refresh_token = await self._create_session(user.id, None, ip_address, user_agent)
        logger.info("Platform admin %d logged in (session %d)", user.id, session.id)
        return LoginResult(
            user=user,
            tenant=None,
            user_role=grant,
            session=session,
            session_token=session_token,
            refresh_token=refresh_token,
        )

    async def logout_user(self, session_token: str | None) -> bool:
        """Delete the session. Idempotent; returns whether a session was removed."""
        if not is_well_formed_token(session_token):
            return False
        removed = await self.sessions.delete_by_session_token(token_digest(session_token))
        if removed:
            logger.info("Session logged out")
        return removed

    async def logout_all_sessions(self, user_id: int, except_token: str | None = None) -> int:
        except_hash = token_digest(except_token) if is_well_formed_token(except_token) else None
        count = await self.sessions.delete_for_user(user_id, except_token_hash=except_hash)
        logger.info("Revoked %d sessions of user %d", count, user_id)
        return count

    # ── Invitations ───────────────────────────────────────────────────────────

    async def accept_invitation(
        self, invite_token: str, password: str | None = None, name: str | None = None
    ) -> UserTenantRole:
        """
        Consume an invitation token and activate the role it carries.

        A password is required only when the invited email has no credential
        yet; an existing credential is never overwritten.

        Raises:
            ValidationError: invitation unknown, consumed or expired; weak or missing password
            NotFoundError: the tenant is no longer active
            ConflictError: the invited email is already an active member of the tenant
        """
        invitation = None
        if is_well_formed_token(invite_token):
            invitation = await self.invitations.get_by_hash(token_digest(invite_token))
        if invitation is None or invitation.is_consumed:
            raise ValidationError("Invitation is invalid", error_code=ErrorCode.INVITATION_INVALID)

        now = utcnow()
        if invitation.is_expired(now):
            raise ValidationError("Invitation has expired", error_code=ErrorCode.INVITATION_EXPIRED)

        needs_password = not await self.invitations.has_credential_for_email(invitation.email)
        password_hash = None
        if needs_password:
            if not password:
                raise ValidationError("Password is required to create an account", field="password")
            self._check_password_policy(password)
            password_hash = hash_password(password, self.password_context)

        grant = await self.invitations.accept(
            token_digest(invite_token),
            now=now,
            password_hash=password_hash,
            algorithm=PASSWORD_ALGORITHM,
            name=name,
        )
        if grant is None:
            # Claimed by a concurrent acceptance between the read and the update
            raise ValidationError("Invitation is invalid", error_code=ErrorCode.INVITATION_INVALID)
        return grant

    # ── Password change ───────────────────────────────────────────────────────

    async def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        current_session_token: str | None = None,
    ) -> None:
        """
        Replace the user's password hash.

        Other sessions of the user are revoked when
        revoke_other_sessions_on_password_change is set; the session that
        performed the change (``current_session_token``) is kept.
        """
        credential = await self.credentials.get_credential(user_id)
        if credential is None or not verify_password(
            current_password, credential.password_hash, self.password_context
        ):
            raise AuthenticationError(
                "Current password is incorrect", error_code=ErrorCode.AUTH_CURRENT_PASSWORD_INCORRECT
            )

        self._check_password_policy(new_password, field="new_password")

        new_hash = hash_password(new_password, self.password_context)
        await self.credentials.replace_credential(user_id, new_hash, PASSWORD_ALGORITHM)
        logger.info("Password changed for user %d", user_id)

        if self.settings.revoke_other_sessions_on_password_change:
            await self.logout_all_sessions(user_id, except_token=current_session_token)
