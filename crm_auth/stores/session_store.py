"""
Session Store

Persistence for UserSession rows. Callers pass token digests, never raw
tokens.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_auth.models.user_session import UserSession
from crm_auth.stores.base import BaseStore

logger = logging.getLogger(__name__)


class SessionStore(BaseStore):
    async def create(
        self,
        user_id: int,
        tenant_id: int | None,
        session_token_hash: str,
        refresh_token_hash: str,
        created_at: datetime,
        expires_at: datetime,
        refresh_expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserSession:
        async def _op(db: AsyncSession) -> UserSession:
            session = UserSession(
                user_id=user_id,
                tenant_id=tenant_id,
                session_token_hash=session_token_hash,
                refresh_token_hash=refresh_token_hash,
                created_at=created_at,
                expires_at=expires_at,
                refresh_expires_at=refresh_expires_at,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.add(session)
            await db.flush()
            return session

        return await self._run(_op, name="create_session", write=True)

    async def get_by_session_token(self, session_token_hash: str, timeout: float | None = None) -> UserSession | None:
        async def _op(db: AsyncSession) -> UserSession | None:
            result = await db.execute(select(UserSession).where(UserSession.session_token_hash == session_token_hash))
            return result.scalars().first()

        return await self._run(_op, name="get_session", timeout=timeout)

    async def get_by_refresh_token(self, refresh_token_hash: str) -> UserSession | None:
        async def _op(db: AsyncSession) -> UserSession | None:
            result = await db.execute(select(UserSession).where(UserSession.refresh_token_hash == refresh_token_hash))
            return result.scalars().first()

        return await self._run(_op, name="get_session_by_refresh")

    async def find_by_consumed_refresh(self, refresh_token_hash: str) -> UserSession | None:
        """The session whose most recently consumed refresh token has this digest."""

        async def _op(db: AsyncSession) -> UserSession | None:
            result = await db.execute(
                select(UserSession).where(UserSession.previous_refresh_token_hash == refresh_token_hash)
            )
            return result.scalars().first()

        return await self._run(_op, name="find_by_consumed_refresh")

    async def rotate(
        self,
        old_refresh_token_hash: str,
        new_session_token_hash: str,
        new_refresh_token_hash: str,
        now: datetime,
        expires_at: datetime,
        refresh_expires_at: datetime,
    ) -> UserSession | None:
        """
        Swap both token digests of the session holding ``old_refresh_token_hash``.

        The swap is a single conditional UPDATE keyed on the old refresh digest
        and an open refresh window. Of several concurrent callers presenting the
        same refresh token exactly one matches a row; the others get None.
        """

        async def _op(db: AsyncSession) -> UserSession | None:
            result = await db.execute(
                update(UserSession)
                .where(
                    UserSession.refresh_token_hash == old_refresh_token_hash,
                    UserSession.refresh_expires_at > now,
                )
                .values(
                    session_token_hash=new_session_token_hash,
                    refresh_token_hash=new_refresh_token_hash,
                    previous_refresh_token_hash=old_refresh_token_hash,
                    last_rotated_at=now,
                    expires_at=expires_at,
                    refresh_expires_at=refresh_expires_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            rotated = await db.execute(
                select(UserSession).where(UserSession.refresh_token_hash == new_refresh_token_hash)
            )
            return rotated.scalars().first()

        return await self._run(_op, name="rotate_session", write=True)

    async def delete_by_session_token(self, session_token_hash: str) -> bool:
        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(delete(UserSession).where(UserSession.session_token_hash == session_token_hash))
            return result.rowcount > 0

        return await self._run(_op, name="delete_session", write=True)

    async def delete(self, session_id: int) -> bool:
        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(delete(UserSession).where(UserSession.id == session_id))
            return result.rowcount > 0

        return await self._run(_op, name="delete_session_by_id", write=True)

    async def delete_for_user(self, user_id: int, except_token_hash: str | None = None) -> int:
        """Delete every session of a user, optionally keeping the one with ``except_token_hash``."""

        async def _op(db: AsyncSession) -> int:
            stmt = delete(UserSession).where(UserSession.user_id == user_id)
            if except_token_hash is not None:
                stmt = stmt.where(UserSession.session_token_hash != except_token_hash)
            result = await db.execute(stmt)
            return result.rowcount

        return await self._run(_op, name="delete_user_sessions", write=True)

    async def purge_expired(self, now: datetime) -> int:
        """Remove sessions whose refresh window has closed."""

        async def _op(db: AsyncSession) -> int:
            result = await db.execute(delete(UserSession).where(UserSession.refresh_expires_at <= now))
            return result.rowcount

        count = await self._run(_op, name="purge_expired_sessions", write=True)
        if count:
            logger.info("Purged %d expired sessions", count)
        return count
