"""User-to-tenant role grants."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text

from crm_auth.database import Base


class UserTenantRole(Base):
    """
    Grants a user one role within a tenant.

    tenant_id is NULL for platform-wide grants (platform_admin). Rows are
    never deleted: removal flips is_active to False so the history stays
    auditable. The partial unique index keeps at most one active grant per
    (user, tenant) even under concurrent writers.
    """

    __tablename__ = "user_tenant_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True)
    role = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    deactivated_at = Column(DateTime, nullable=True)
    invited_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        Index(
            "uq_user_tenant_active_role",
            "user_id",
            "tenant_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
