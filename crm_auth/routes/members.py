"""
Tenant Membership Routes

POST   /api/v1/{tenant}/invitations              → invite a user (users:create)
PUT    /api/v1/{tenant}/members/{user_id}/role   → change a member's role (users:update)
DELETE /api/v1/{tenant}/members/{user_id}        → deactivate a member (users:delete)

The tenant id always comes from the AuthContext; the path segment is only
used to check the caller is scoped to it.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr

from crm_auth.permissions_config.permission_dependencies import permission_required
from crm_auth.schemas.auth import MembershipResponse, MessageResponse
from crm_auth.services.membership_service import MembershipService
from crm_auth.services.session_validator import AuthContext

router = APIRouter(tags=["Members"])
logger = logging.getLogger(__name__)


# ── Pydantic schemas ───────────────────────────────────────────────────────────


class InvitationCreate(BaseModel):
    email: EmailStr
    role: str


class InvitationResponse(BaseModel):
    id: int
    email: str
    role: str
    tenant_id: int
    expires_at: datetime
    # Shown once; only its digest is stored
    token: str


class RoleUpdate(BaseModel):
    role: str


# ── Dependency ─────────────────────────────────────────────────────────────────


def get_membership_service(request: Request) -> MembershipService:
    return request.app.state.membership_service


# ── Routes ─────────────────────────────────────────────────────────────────────


@router.post("/{tenant}/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreate,
    context: AuthContext = Depends(permission_required("users", "create")),
    membership_service: MembershipService = Depends(get_membership_service),
) -> InvitationResponse:
    invitation, raw_token = await membership_service.invite_user(
        tenant_id=context.tenant_id, email=payload.email, role=payload.role, actor=context
    )
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=invitation.role,
        tenant_id=invitation.tenant_id,
        expires_at=invitation.expires_at,
        token=raw_token,
    )


@router.put("/{tenant}/members/{user_id}/role", response_model=MembershipResponse)
async def change_member_role(
    user_id: int,
    payload: RoleUpdate,
    context: AuthContext = Depends(permission_required("users", "update")),
    membership_service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    grant = await membership_service.change_member_role(
        tenant_id=context.tenant_id, user_id=user_id, role=payload.role, actor=context
    )
    return MembershipResponse.model_validate(grant)


@router.delete("/{tenant}/members/{user_id}", response_model=MessageResponse)
async def deactivate_member(
    user_id: int,
    context: AuthContext = Depends(permission_required("users", "delete")),
    membership_service: MembershipService = Depends(get_membership_service),
) -> MessageResponse:
    await membership_service.deactivate_member(tenant_id=context.tenant_id, user_id=user_id, actor=context)
    return MessageResponse(message="Member deactivated")
