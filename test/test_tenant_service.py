"""
Tests for TenantService
"""

import pytest

from crm_auth.exceptions import ConflictError, NotFoundError, ValidationError
from crm_auth.models.tenant import TenantStatus


class TestCreateTenant:
    async def test_create(self, tenant_service):
        tenant = await tenant_service.create_tenant("Noord Wonen", "noord-wonen")
        assert tenant.id is not None
        assert tenant.slug == "noord-wonen"
        assert tenant.status == TenantStatus.active.value
        assert tenant.is_active

    @pytest.mark.parametrize("slug", ["Demo", "demo_1", "-demo", "demo-", "de--mo", "with space", ""])
    async def test_invalid_slugs(self, tenant_service, slug):
        with pytest.raises(ValidationError) as exc_info:
            await tenant_service.create_tenant("Bad", slug)
        assert exc_info.value.details["field"] == "slug"

    async def test_duplicate_slug(self, tenant_service, demo_tenant):
        with pytest.raises(ConflictError) as exc_info:
            await tenant_service.create_tenant("Another Demo", "demo")
        assert exc_info.value.details["field"] == "slug"


class TestLookups:
    async def test_by_slug_and_id(self, tenant_service, demo_tenant):
        assert (await tenant_service.get_tenant_by_slug("demo")).id == demo_tenant.id
        assert (await tenant_service.get_tenant_by_id(demo_tenant.id)).slug == "demo"
        assert await tenant_service.get_tenant_by_slug("nowhere") is None

    async def test_list_is_paginated(self, tenant_service, demo_tenant, acme_tenant):
        assert {t.slug for t in await tenant_service.list_tenants()} == {"demo", "acme"}
        assert len(await tenant_service.list_tenants(skip=0, limit=1)) == 1
        assert await tenant_service.list_tenants(skip=2, limit=10) == []


class TestStatus:
    async def test_suspend_and_activate(self, tenant_service, demo_tenant):
        suspended = await tenant_service.suspend_tenant("demo")
        assert suspended.status == TenantStatus.suspended.value
        assert not suspended.is_active

        active = await tenant_service.activate_tenant("demo")
        assert active.is_active

    async def test_unknown_slug(self, tenant_service):
        with pytest.raises(NotFoundError):
            await tenant_service.suspend_tenant("nowhere")
