"""
Role permission table.

Permissions are (resource, action) pairs derived from the role alone; they are
never stored. Resources and actions outside the enumerations below are simply
absent from every set, so lookups with unknown values come back False.
"""

from dataclasses import dataclass

from crm_auth.constants.roles import RoleName, parse_role


@dataclass(frozen=True)
class Permission:
    resource: str
    action: str

    def __str__(self) -> str:
        return f"{self.resource}:{self.action}"


# Business entities owned by other modules; they only consume tenant_id
BUSINESS_RESOURCES = ("properties", "contacts", "leads", "relationships")
RESOURCES = BUSINESS_RESOURCES + ("users", "tenant", "settings", "platform")

CRUD_ACTIONS = ("create", "read", "update", "delete")
ACTIONS = CRUD_ACTIONS + ("manage",)


def _grant(resources, actions) -> set[Permission]:
    return {Permission(resource, action) for resource in resources for action in actions}


_ADMIN_PERMISSIONS = (
    _grant(BUSINESS_RESOURCES, ACTIONS)
    | _grant(("users",), ACTIONS)
    | _grant(("settings",), ("read", "update", "manage"))
    | _grant(("tenant",), ("read", "update"))
)

ROLE_PERMISSIONS: dict[RoleName, frozenset[Permission]] = {
    RoleName.PLATFORM_ADMIN: frozenset(_grant(RESOURCES, ACTIONS)),
    RoleName.TENANT_OWNER: frozenset(_ADMIN_PERMISSIONS | _grant(("tenant",), ("manage",))),
    RoleName.TENANT_ADMIN: frozenset(_ADMIN_PERMISSIONS),
    RoleName.AGENT: frozenset(
        _grant(BUSINESS_RESOURCES, ("create", "read", "update")) | _grant(("settings", "tenant"), ("read",))
    ),
    RoleName.ASSISTANT: frozenset(
        _grant(BUSINESS_RESOURCES, ("read",))
        | _grant(("contacts", "leads"), ("create", "update"))
        | _grant(("tenant",), ("read",))
    ),
    RoleName.VIEWER: frozenset(_grant(BUSINESS_RESOURCES, ("read",)) | _grant(("tenant",), ("read",))),
}


def get_role_permissions(role) -> frozenset[Permission]:
    """
    Returns the permission set for a role name or RoleName.

    Unknown roles get the empty set.
    """
    role_name = parse_role(role)
    if role_name is None:
        return frozenset()
    return ROLE_PERMISSIONS[role_name]


def role_has_permission(role, resource: str, action: str) -> bool:
    return Permission(resource, action) in get_role_permissions(role)
