"""
Permission Service

Resolves the effective role and permission set of a user within a tenant.
The role is read from the active UserTenantRole on every call; permissions
are derived from it through ROLE_PERMISSIONS.
"""

import logging

from crm_auth.constants.roles import parse_role
from crm_auth.permissions_config.permissions import Permission, get_role_permissions
from crm_auth.stores.membership_store import MembershipStore

logger = logging.getLogger(__name__)


class PermissionService:
    def __init__(self, memberships: MembershipStore) -> None:
        self.memberships = memberships

    @staticmethod
    def has_permission(permissions, resource: str, action: str) -> bool:
        return Permission(resource, action) in permissions

    async def get_user_permissions(self, user_id: int, tenant_id: int | None) -> tuple[str | None, frozenset[Permission]]:
        """
        Return (role, permissions) for the user's active grant in the tenant.

        A user without an active grant, or holding a role outside the
        enumeration, gets (role-or-None, empty set).
        """
        grant = await self.memberships.get_active_role(user_id, tenant_id)
        if grant is None:
            return None, frozenset()
        if parse_role(grant.role) is None:
            logger.warning("Unknown role %r on grant %d", grant.role, grant.id)
        return grant.role, get_role_permissions(grant.role)

    async def user_has_permission(self, user_id: int, tenant_id: int | None, resource: str, action: str) -> bool:
        """True if the user's active role in the tenant grants resource:action. Never raises for unknown values."""
        _, permissions = await self.get_user_permissions(user_id, tenant_id)
        return self.has_permission(permissions, resource, action)
