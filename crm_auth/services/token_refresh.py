"""
Token Refresh Manager

Single-use rotation of the (session token, refresh token) pair. The swap of
both digests on the session row is one conditional UPDATE, so concurrent
refreshes with the same refresh token produce exactly one success. A loser
of such a race sees its token as already consumed within the grace window
and is turned away without revoking the winner's session.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from crm_auth.config import Settings
from crm_auth.stores.session_store import SessionStore
from crm_auth.utils.security import generate_token, is_well_formed_token, token_digest, utcnow

logger = logging.getLogger(__name__)


class RefreshFailure(str, enum.Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    REUSED = "reused"


@dataclass
class RefreshResult:
    success: bool
    session_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    refresh_expires_at: datetime | None = None
    failure: RefreshFailure | None = None

    @classmethod
    def fail(cls, failure: RefreshFailure) -> "RefreshResult":
        return cls(success=False, failure=failure)


class TokenRefreshManager:
    def __init__(self, sessions: SessionStore, settings: Settings) -> None:
        self.sessions = sessions
        self.settings = settings

    async def refresh_session(self, refresh_token: str | None) -> RefreshResult:
        if not is_well_formed_token(refresh_token):
            return RefreshResult.fail(RefreshFailure.INVALID)

        old_hash = token_digest(refresh_token)
        new_session_token = generate_token()
        new_refresh_token = generate_token()
        now = utcnow()
        expires_at = now + timedelta(hours=self.settings.session_token_ttl_hours)
        refresh_expires_at = now + timedelta(days=self.settings.refresh_token_ttl_days)

        rotated = await self.sessions.rotate(
            old_refresh_token_hash=old_hash,
            new_session_token_hash=token_digest(new_session_token),
            new_refresh_token_hash=token_digest(new_refresh_token),
            now=now,
            expires_at=expires_at,
            refresh_expires_at=refresh_expires_at,
        )
        if rotated is not None:
            logger.info("Session %d rotated for user %d", rotated.id, rotated.user_id)
            return RefreshResult(
                success=True,
                session_token=new_session_token,
                refresh_token=new_refresh_token,
                expires_at=expires_at,
                refresh_expires_at=refresh_expires_at,
            )

        return await self._classify_failure(old_hash)

    def _within_grace(self, rotated_at: datetime | None) -> bool:
        if rotated_at is None:
            return False
        return utcnow() - rotated_at <= timedelta(seconds=self.settings.refresh_reuse_grace_seconds)

    async def _classify_failure(self, refresh_hash: str) -> RefreshResult:
        current = await self.sessions.get_by_refresh_token(refresh_hash)
        if current is not None:
            # Token still current but the rotation did not match: refresh window closed
            logger.info("Refresh rejected: refresh window of session %d closed", current.id)
            return RefreshResult.fail(RefreshFailure.EXPIRED)

        consumed = await self.sessions.find_by_consumed_refresh(refresh_hash)
        if consumed is not None and self._within_grace(consumed.last_rotated_at):
            # Lost a concurrent refresh; the winner's pair stays valid
            logger.info("Refresh rejected: session %d was rotated by a concurrent refresh", consumed.id)
            return RefreshResult.fail(RefreshFailure.INVALID)

        if consumed is not None:
            logger.warning("Refresh token reuse detected on session %d (user %d)", consumed.id, consumed.user_id)
            if self.settings.revoke_session_on_refresh_reuse:
                await self.sessions.delete(consumed.id)
                logger.warning("Session %d revoked after refresh token reuse", consumed.id)
            return RefreshResult.fail(RefreshFailure.REUSED)

        logger.info("Refresh rejected: unknown refresh token")
        return RefreshResult.fail(RefreshFailure.INVALID)
