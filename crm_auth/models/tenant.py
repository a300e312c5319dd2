"""
Tenant model.

Each Tenant represents an isolated organisation (customer account). Role
grants and all business data are partitioned by tenant id.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from crm_auth.database import Base


class TenantStatus(str, enum.Enum):
    active = "active"
    suspended = "suspended"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(100), nullable=False, unique=True)  # URL-safe and immutable, e.g. "demo"
    name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=TenantStatus.active.value)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_tenant_slug", "slug"),
        Index("idx_tenant_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.active.value
