"""
Tenant Store

Async accessors for Tenant rows.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_auth.exceptions import ConflictError
from crm_auth.models.tenant import Tenant, TenantStatus
from crm_auth.stores.base import BaseStore
from crm_auth.utils.security import utcnow


class TenantStore(BaseStore):
    async def create_tenant(self, name: str, slug: str) -> Tenant:
        async def _op(db: AsyncSession) -> Tenant:
            existing = await db.execute(select(Tenant.id).where(Tenant.slug == slug))
            if existing.scalar() is not None:
                raise ConflictError("Tenant", "slug", slug)
            tenant = Tenant(name=name, slug=slug, status=TenantStatus.active.value, created_at=utcnow())
            db.add(tenant)
            await db.flush()
            return tenant

        return await self._run(_op, name="create_tenant", write=True, conflict=ConflictError("Tenant", "slug", slug))

    async def get_by_id(self, tenant_id: int) -> Tenant | None:
        async def _op(db: AsyncSession) -> Tenant | None:
            result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
            return result.scalars().first()

        return await self._run(_op, name="get_tenant_by_id")

    async def get_by_slug(self, slug: str) -> Tenant | None:
        async def _op(db: AsyncSession) -> Tenant | None:
            result = await db.execute(select(Tenant).where(Tenant.slug == slug))
            return result.scalars().first()

        return await self._run(_op, name="get_tenant_by_slug")

    async def list_tenants(self, skip: int = 0, limit: int = 20) -> list[Tenant]:
        async def _op(db: AsyncSession) -> list[Tenant]:
            result = await db.execute(select(Tenant).order_by(Tenant.id).offset(skip).limit(limit))
            return list(result.scalars().all())

        return await self._run(_op, name="list_tenants")

    async def set_status(self, tenant_id: int, status: TenantStatus) -> Tenant | None:
        async def _op(db: AsyncSession) -> Tenant | None:
            await db.execute(
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(status=status.value)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
            return result.scalars().first()

        return await self._run(_op, name="set_tenant_status", write=True)
