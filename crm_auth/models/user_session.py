"""Server-side session records."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from crm_auth.database import Base


class UserSession(Base):
    """
    Binds an opaque session token and its sibling refresh token to a
    (user, tenant) pair.

    Tokens are stored as SHA-256 digests only. Rotation rewrites both
    digests on the same row; the consumed refresh digest is kept in
    previous_refresh_token_hash so a replay can be recognised.
    """

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL for platform admin sessions
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True)

    session_token_hash = Column(String(64), unique=True, nullable=False, index=True)
    refresh_token_hash = Column(String(64), unique=True, nullable=False, index=True)
    previous_refresh_token_hash = Column(String(64), nullable=True, index=True)

    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_rotated_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    refresh_expires_at = Column(DateTime, nullable=False)

    @property
    def is_platform_session(self) -> bool:
        return self.tenant_id is None
