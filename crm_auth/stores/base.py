"""
Common plumbing for the relational store accessors.

Each store operation runs in its own AsyncSession and transaction, under the
store's deadline. SQLAlchemy failures surface as InternalError (or
ConflictError when the caller maps a uniqueness violation), timeouts as
StoreTimeoutError.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_auth.exceptions import ConflictError, InternalError, StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], timeout: float | None = None):
        self._session_factory = session_factory
        self._timeout = timeout

    async def _run(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        *,
        name: str,
        write: bool = False,
        conflict: ConflictError | None = None,
        timeout: float | None = None,
    ) -> T:
        """Run ``operation`` in a fresh session; commit when ``write`` is set."""

        async def _execute() -> T:
            async with self._session_factory() as db:
                try:
                    result = await operation(db)
                    if write:
                        await db.commit()
                    return result
                except BaseException:
                    await db.rollback()
                    raise

        deadline = timeout if timeout is not None else self._timeout
        try:
            return await asyncio.wait_for(_execute(), timeout=deadline)
        except asyncio.TimeoutError as exc:
            logger.warning("Store operation %s exceeded deadline of %ss", name, deadline)
            raise StoreTimeoutError(operation=name) from exc
        except IntegrityError as exc:
            if conflict is not None:
                raise conflict from exc
            logger.error("Integrity error in store operation %s: %s", name, exc.orig)
            raise InternalError(operation=name) from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed: %s", name, exc)
            raise InternalError(operation=name) from exc
