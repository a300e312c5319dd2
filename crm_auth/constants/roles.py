"""
Role Constants

The closed set of roles a user can hold within a tenant, or platform-wide
for platform_admin.
"""

from enum import Enum


class RoleName(str, Enum):
    """Enumeration of role names in the system."""

    PLATFORM_ADMIN = "platform_admin"
    TENANT_OWNER = "tenant_owner"
    TENANT_ADMIN = "tenant_admin"
    AGENT = "agent"
    ASSISTANT = "assistant"
    VIEWER = "viewer"


# Roles that may be granted inside a tenant
TENANT_ROLES = (
    RoleName.TENANT_OWNER,
    RoleName.TENANT_ADMIN,
    RoleName.AGENT,
    RoleName.ASSISTANT,
    RoleName.VIEWER,
)

# Roles accepted by require_admin
ADMIN_ROLES = (RoleName.PLATFORM_ADMIN, RoleName.TENANT_OWNER, RoleName.TENANT_ADMIN)

# Role hierarchy (higher number = more permissions)
ROLE_HIERARCHY = {
    RoleName.VIEWER: 1,
    RoleName.ASSISTANT: 2,
    RoleName.AGENT: 3,
    RoleName.TENANT_ADMIN: 4,
    RoleName.TENANT_OWNER: 5,
    RoleName.PLATFORM_ADMIN: 6,
}


def parse_role(role: str) -> RoleName | None:
    """Return the RoleName for a raw value, or None for unknown roles."""
    try:
        return RoleName(role)
    except ValueError:
        return None


def role_rank(role: str) -> int:
    """Hierarchy rank of a role; unknown roles rank 0."""
    parsed = parse_role(role)
    return ROLE_HIERARCHY.get(parsed, 0) if parsed else 0


def can_grant_role(granter_role: str, target_role: str) -> bool:
    """
    Check if a user holding granter_role may grant target_role.

    Grants never go above the granter's own rank, and platform_admin is
    never granted through tenant-scoped flows.
    """
    target = parse_role(target_role)
    if target is None or target is RoleName.PLATFORM_ADMIN:
        return False
    return role_rank(granter_role) >= role_rank(target_role)
