"""
Tenant Administration Routes

All routes are restricted to platform admins.

POST   /api/v1/tenants                  → create tenant
GET    /api/v1/tenants                  → list tenants
GET    /api/v1/tenants/{slug}           → get tenant by slug
POST   /api/v1/tenants/{slug}/suspend   → suspend tenant
POST   /api/v1/tenants/{slug}/activate  → reactivate tenant
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field

from crm_auth.exceptions import NotFoundError
from crm_auth.models.tenant import Tenant
from crm_auth.permissions_config.permission_dependencies import platform_admin_required
from crm_auth.services.session_validator import AuthContext
from crm_auth.services.tenant_service import TenantService

router = APIRouter(tags=["Tenants"])
logger = logging.getLogger(__name__)


# ── Pydantic schemas ───────────────────────────────────────────────────────────


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=100)


class TenantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    status: str
    created_at: str

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantResponse":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            status=tenant.status,
            created_at=tenant.created_at.isoformat(),
        )


# ── Dependency ─────────────────────────────────────────────────────────────────


def get_tenant_service(request: Request) -> TenantService:
    return request.app.state.tenant_service


# ── Routes ─────────────────────────────────────────────────────────────────────


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant_route(
    payload: TenantCreate,
    context: AuthContext = Depends(platform_admin_required),
    tenant_service: TenantService = Depends(get_tenant_service),
) -> TenantResponse:
    """Create a new tenant organisation (platform admin only)."""
    tenant = await tenant_service.create_tenant(name=payload.name, slug=payload.slug)
    logger.info("Tenant %s created by platform admin %d", tenant.slug, context.user.id)
    return TenantResponse.from_tenant(tenant)


@router.get("", response_model=list[TenantResponse])
async def list_tenants_route(
    skip: int = 0,
    limit: int = 20,
    _context: AuthContext = Depends(platform_admin_required),
    tenant_service: TenantService = Depends(get_tenant_service),
) -> list[TenantResponse]:
    tenants = await tenant_service.list_tenants(skip=skip, limit=limit)
    return [TenantResponse.from_tenant(t) for t in tenants]


@router.get("/{slug}", response_model=TenantResponse)
async def get_tenant_route(
    slug: str,
    _context: AuthContext = Depends(platform_admin_required),
    tenant_service: TenantService = Depends(get_tenant_service),
) -> TenantResponse:
    tenant = await tenant_service.get_tenant_by_slug(slug)
    if tenant is None:
        raise NotFoundError("Tenant", slug)
    return TenantResponse.from_tenant(tenant)


@router.post("/{slug}/suspend", response_model=TenantResponse)
async def suspend_tenant_route(
    slug: str,
    _context: AuthContext = Depends(platform_admin_required),
    tenant_service: TenantService = Depends(get_tenant_service),
) -> TenantResponse:
    """Suspend a tenant; sessions scoped to it stop validating."""
    return TenantResponse.from_tenant(await tenant_service.suspend_tenant(slug))


@router.post("/{slug}/activate", response_model=TenantResponse)
async def activate_tenant_route(
    slug: str,
    _context: AuthContext = Depends(platform_admin_required),
    tenant_service: TenantService = Depends(get_tenant_service),
) -> TenantResponse:
    return TenantResponse.from_tenant(await tenant_service.activate_tenant(slug))
