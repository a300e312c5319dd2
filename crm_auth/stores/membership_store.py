"""
Membership Store

UserTenantRole grants. A grant change is always "deactivate the current
active row, insert the new one" inside one transaction, so the partial
unique index on (user_id, tenant_id) WHERE is_active is never violated and
the previous grant survives as history.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_auth.exceptions import ConflictError
from crm_auth.models.membership import UserTenantRole
from crm_auth.stores.base import BaseStore
from crm_auth.utils.security import utcnow


def _tenant_clause(tenant_id: int | None):
    if tenant_id is None:
        return UserTenantRole.tenant_id.is_(None)
    return UserTenantRole.tenant_id == tenant_id


async def get_active_grant(db: AsyncSession, user_id: int, tenant_id: int | None) -> UserTenantRole | None:
    result = await db.execute(
        select(UserTenantRole).where(
            UserTenantRole.user_id == user_id,
            _tenant_clause(tenant_id),
            UserTenantRole.is_active.is_(True),
        )
    )
    return result.scalars().first()


async def deactivate_active_grant(db: AsyncSession, user_id: int, tenant_id: int | None) -> int:
    result = await db.execute(
        update(UserTenantRole)
        .where(UserTenantRole.user_id == user_id, _tenant_clause(tenant_id), UserTenantRole.is_active.is_(True))
        .values(is_active=False, deactivated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def insert_active_grant(
    db: AsyncSession, user_id: int, tenant_id: int | None, role: str, invited_by_id: int | None = None
) -> UserTenantRole:
    grant = UserTenantRole(
        user_id=user_id,
        tenant_id=tenant_id,
        role=role,
        is_active=True,
        joined_at=utcnow(),
        invited_by_id=invited_by_id,
    )
    db.add(grant)
    await db.flush()
    return grant


class MembershipStore(BaseStore):
    async def get_active_role(self, user_id: int, tenant_id: int | None) -> UserTenantRole | None:
        """The single active grant for (user, tenant); tenant_id None means platform-wide."""

        async def _op(db: AsyncSession) -> UserTenantRole | None:
            return await get_active_grant(db, user_id, tenant_id)

        return await self._run(_op, name="get_active_role")

    async def grant_role(
        self, user_id: int, tenant_id: int | None, role: str, invited_by_id: int | None = None
    ) -> UserTenantRole:
        """Make ``role`` the user's only active grant in the tenant."""

        async def _op(db: AsyncSession) -> UserTenantRole:
            await deactivate_active_grant(db, user_id, tenant_id)
            return await insert_active_grant(db, user_id, tenant_id, role, invited_by_id)

        return await self._run(
            _op,
            name="grant_role",
            write=True,
            conflict=ConflictError("UserTenantRole", "user_id", user_id),
        )

    async def deactivate_role(self, user_id: int, tenant_id: int | None) -> bool:
        async def _op(db: AsyncSession) -> bool:
            return await deactivate_active_grant(db, user_id, tenant_id) > 0

        return await self._run(_op, name="deactivate_role", write=True)
