from .base import BaseStore
from .credential_store import CredentialStore, normalize_email
from .invitation_store import InvitationStore
from .membership_store import MembershipStore
from .session_store import SessionStore
from .tenant_store import TenantStore

__all__ = [
    "BaseStore",
    "CredentialStore",
    "InvitationStore",
    "MembershipStore",
    "SessionStore",
    "TenantStore",
    "normalize_email",
]
