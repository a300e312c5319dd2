from .auth import (
    AcceptInvitationRequest,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MembershipResponse,
    MessageResponse,
    PlatformAdminLoginRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    SessionResponse,
    TenantSummary,
    UserResponse,
)

__all__ = [
    "AcceptInvitationRequest",
    "ChangePasswordRequest",
    "LoginRequest",
    "LoginResponse",
    "MembershipResponse",
    "MessageResponse",
    "PlatformAdminLoginRequest",
    "RefreshRequest",
    "RefreshResponse",
    "RegisterRequest",
    "RegisterResponse",
    "SessionResponse",
    "TenantSummary",
    "UserResponse",
]
