"""
Tenant Service

Platform-level tenant administration. Tenants are suspended, never deleted.
"""

import logging
import re

from crm_auth.exceptions import NotFoundError, ValidationError
from crm_auth.models.tenant import Tenant, TenantStatus
from crm_auth.stores.tenant_store import TenantStore

logger = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class TenantService:
    def __init__(self, tenants: TenantStore) -> None:
        self.tenants = tenants

    async def create_tenant(self, name: str, slug: str) -> Tenant:
        """Create a new tenant organisation. Raises ConflictError on a taken slug."""
        if not _SLUG_PATTERN.match(slug):
            raise ValidationError("Slug must be lowercase letters, digits and single hyphens", field="slug")
        tenant = await self.tenants.create_tenant(name=name, slug=slug)
        logger.info("Tenant created: id=%d slug=%s", tenant.id, tenant.slug)
        return tenant

    async def get_tenant_by_id(self, tenant_id: int) -> Tenant | None:
        return await self.tenants.get_by_id(tenant_id)

    async def get_tenant_by_slug(self, slug: str) -> Tenant | None:
        return await self.tenants.get_by_slug(slug)

    async def list_tenants(self, skip: int = 0, limit: int = 20) -> list[Tenant]:
        return await self.tenants.list_tenants(skip=skip, limit=limit)

    async def _set_status(self, slug: str, status: TenantStatus) -> Tenant:
        tenant = await self.tenants.get_by_slug(slug)
        if tenant is None:
            raise NotFoundError("Tenant", slug)
        updated = await self.tenants.set_status(tenant.id, status)
        logger.info("Tenant %s status set to %s", slug, status.value)
        return updated

    async def suspend_tenant(self, slug: str) -> Tenant:
        """Suspend a tenant; its sessions stop validating on the next request."""
        return await self._set_status(slug, TenantStatus.suspended)

    async def activate_tenant(self, slug: str) -> Tenant:
        return await self._set_status(slug, TenantStatus.active)
