"""
Authentication Schemas

Pydantic models for the /api/auth endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from crm_auth.models.tenant import Tenant
from crm_auth.models.user import User
from crm_auth.services.session_validator import AuthContext


class RegisterRequest(BaseModel):
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    tenant_slug: str = Field(..., min_length=1, max_length=100)
    role: str = Field(..., description="Role to grant in the tenant")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    tenant_slug: str = Field(..., min_length=1, max_length=100)


class PlatformAdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


class AcceptInvitationRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Invitation token")
    password: str | None = Field(None, max_length=128, description="Required when the invited email has no account")
    name: str | None = Field(None, max_length=200)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    email_verified: bool


class TenantSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    name: str


class LoginResponse(BaseModel):
    user: UserResponse
    role: str
    tenant: TenantSummary | None
    session_token: str
    expires_at: datetime


class RefreshResponse(BaseModel):
    session_token: str
    expires_at: datetime


class RegisterResponse(BaseModel):
    user: UserResponse
    role: str
    tenant_id: int


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    tenant_id: int | None
    role: str
    is_active: bool
    joined_at: datetime


class SessionResponse(BaseModel):
    user: UserResponse
    role: str
    tenant: TenantSummary | None
    permissions: list[str]

    @classmethod
    def from_context(cls, context: AuthContext) -> "SessionResponse":
        return cls(
            user=UserResponse.model_validate(context.user),
            role=context.user_role,
            tenant=TenantSummary.model_validate(context.tenant) if context.tenant is not None else None,
            permissions=sorted(str(permission) for permission in context.permissions),
        )


class MessageResponse(BaseModel):
    message: str
    success: bool = True


def summarize_tenant(tenant: Tenant | None) -> TenantSummary | None:
    return TenantSummary.model_validate(tenant) if tenant is not None else None


def summarize_user(user: User) -> UserResponse:
    return UserResponse.model_validate(user)
