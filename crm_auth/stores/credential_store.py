"""
Credential Store

Reads and writes users and their hashed password credentials.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_auth.constants.auth import CREDENTIAL_PROVIDER
from crm_auth.exceptions import ConflictError
from crm_auth.models.membership import UserTenantRole
from crm_auth.models.user import Credential, User
from crm_auth.stores.base import BaseStore
from crm_auth.utils.security import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore(BaseStore):
    async def get_user_by_email(self, email: str) -> User | None:
        async def _op(db: AsyncSession) -> User | None:
            result = await db.execute(select(User).where(User.email == normalize_email(email)))
            return result.scalars().first()

        return await self._run(_op, name="get_user_by_email")

    async def get_user(self, user_id: int) -> User | None:
        async def _op(db: AsyncSession) -> User | None:
            result = await db.execute(select(User).where(User.id == user_id))
            return result.scalars().first()

        return await self._run(_op, name="get_user")

    async def get_credential(self, user_id: int) -> Credential | None:
        async def _op(db: AsyncSession) -> Credential | None:
            result = await db.execute(
                select(Credential).where(Credential.user_id == user_id, Credential.provider == CREDENTIAL_PROVIDER)
            )
            return result.scalars().first()

        return await self._run(_op, name="get_credential")

    async def create_user_with_role(
        self,
        email: str,
        name: str,
        password_hash: str,
        algorithm: str,
        tenant_id: int | None,
        role: str,
    ) -> tuple[User, UserTenantRole]:
        """
        Create a user, its credential and an active role grant in one transaction.

        Raises:
            ConflictError: if a user with this email already exists
        """
        email = normalize_email(email)

        async def _op(db: AsyncSession) -> tuple[User, UserTenantRole]:
            existing = await db.execute(select(User.id).where(User.email == email))
            if existing.scalar() is not None:
                raise ConflictError("User", "email", email)

            now = utcnow()
            user = User(email=email, name=name, email_verified=False, is_active=True, created_at=now, updated_at=now)
            db.add(user)
            await db.flush()

            db.add(
                Credential(
                    user_id=user.id,
                    provider=CREDENTIAL_PROVIDER,
                    password_hash=password_hash,
                    algorithm=algorithm,
                    created_at=now,
                    updated_at=now,
                )
            )
            grant = UserTenantRole(user_id=user.id, tenant_id=tenant_id, role=role, is_active=True, joined_at=now)
            db.add(grant)
            await db.flush()
            return user, grant

        user, grant = await self._run(
            _op, name="create_user_with_role", write=True, conflict=ConflictError("User", "email", email)
        )
        logger.info("User created: id=%d tenant_id=%s role=%s", user.id, tenant_id, role)
        return user, grant

    async def replace_credential(self, user_id: int, password_hash: str, algorithm: str) -> bool:
        """Swap the password hash wholesale. Returns False if the user has no credential."""

        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(
                update(Credential)
                .where(Credential.user_id == user_id, Credential.provider == CREDENTIAL_PROVIDER)
                .values(password_hash=password_hash, algorithm=algorithm, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        return await self._run(_op, name="replace_credential", write=True)

    async def set_user_active(self, user_id: int, is_active: bool) -> bool:
        """Soft-(de)activate a user; users are never hard-deleted."""

        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(is_active=is_active, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        return await self._run(_op, name="set_user_active", write=True)

