"""
Membership Service

Tenant membership administration: invitations, role changes and member
deactivation. An actor may only grant or manage roles at or below their own
rank, and platform_admin is never granted inside a tenant.
"""

import logging
from datetime import timedelta

from crm_auth.config import Settings
from crm_auth.constants.roles import can_grant_role, parse_role, role_rank
from crm_auth.exceptions import AuthorizationError, ConflictError, ErrorCode, NotFoundError, ValidationError
from crm_auth.models.invitation import InvitationToken
from crm_auth.models.membership import UserTenantRole
from crm_auth.services.session_validator import AuthContext
from crm_auth.stores.invitation_store import InvitationStore
from crm_auth.stores.membership_store import MembershipStore
from crm_auth.utils.security import generate_token, token_digest, utcnow

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, memberships: MembershipStore, invitations: InvitationStore, settings: Settings) -> None:
        self.memberships = memberships
        self.invitations = invitations
        self.settings = settings

    @staticmethod
    def _check_grantable(actor: AuthContext, role: str) -> str:
        role_name = parse_role(role)
        if role_name is None:
            raise ValidationError(f"Unknown role: {role}", field="role")
        if not can_grant_role(actor.user_role, role_name.value):
            raise AuthorizationError(
                f"Role '{actor.user_role}' cannot grant role '{role_name.value}'",
                error_code=ErrorCode.AUTH_ROLE_REQUIRED,
            )
        return role_name.value

    async def _get_managed_member(self, actor: AuthContext, tenant_id: int, user_id: int) -> UserTenantRole:
        if user_id == actor.user.id:
            raise ValidationError("You cannot change your own membership", field="user_id")
        grant = await self.memberships.get_active_role(user_id, tenant_id)
        if grant is None:
            raise NotFoundError("Member", user_id)
        if role_rank(grant.role) > role_rank(actor.user_role):
            raise AuthorizationError(
                f"Role '{actor.user_role}' cannot manage a member with role '{grant.role}'",
                error_code=ErrorCode.AUTH_ROLE_REQUIRED,
            )
        return grant

    async def invite_user(self, tenant_id: int, email: str, role: str, actor: AuthContext) -> tuple[InvitationToken, str]:
        """
        Create an invitation for ``email`` to join the tenant with ``role``.

        Returns the stored invitation and the raw token. The raw token is not
        persisted and cannot be recovered later. Existing active members are
        refused with ConflictError; their role changes go through
        change_member_role.
        """
        role_value = self._check_grantable(actor, role)
        if await self.invitations.has_active_grant_for_email(email, tenant_id):
            raise ConflictError("Membership", "email", email)
        raw_token = generate_token()
        now = utcnow()
        invitation = await self.invitations.create(
            token_hash=token_digest(raw_token),
            email=email,
            tenant_id=tenant_id,
            role=role_value,
            invited_by_id=actor.user.id,
            created_at=now,
            expires_at=now + timedelta(days=self.settings.invitation_ttl_days),
        )
        logger.info(
            "Invitation %d created for tenant %d role=%s by user %d", invitation.id, tenant_id, role_value, actor.user.id
        )
        return invitation, raw_token

    async def change_member_role(self, tenant_id: int, user_id: int, role: str, actor: AuthContext) -> UserTenantRole:
        """Replace the member's active grant; the previous row is kept inactive."""
        role_value = self._check_grantable(actor, role)
        await self._get_managed_member(actor, tenant_id, user_id)
        grant = await self.memberships.grant_role(user_id, tenant_id, role_value, invited_by_id=actor.user.id)
        logger.info("User %d role in tenant %d changed to %s by user %d", user_id, tenant_id, role_value, actor.user.id)
        return grant

    async def deactivate_member(self, tenant_id: int, user_id: int, actor: AuthContext) -> None:
        await self._get_managed_member(actor, tenant_id, user_id)
        await self.memberships.deactivate_role(user_id, tenant_id)
        logger.info("User %d deactivated in tenant %d by user %d", user_id, tenant_id, actor.user.id)
