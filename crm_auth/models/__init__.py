from .invitation import InvitationToken
from .membership import UserTenantRole
from .tenant import Tenant, TenantStatus
from .user import Credential, User
from .user_session import UserSession

__all__ = [
    "Credential",
    "InvitationToken",
    "Tenant",
    "TenantStatus",
    "User",
    "UserSession",
    "UserTenantRole",
]
