from uuid import uuid4

from sqlalchemy import Column, Integer, String, Numeric, UniqueConstraint, DateTime, Text
from sqlalchemy.orm import declarative_base

from bizledger.core.timeutil import utcnow


Base = declarative_base()


def new_id() -> str:
    return str(uuid4())


class Tenant(Base):
    """A business profile owned by one user."""

    __tablename__ = "business_profiles"
    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_business_profiles_owner_name"),
        UniqueConstraint("owner_id", "request_id", name="uq_business_profiles_owner_request"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    business_type = Column(String(100), nullable=True)
    stage = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True)
    capital = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    owner_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    logo_url = Column(String(500), nullable=True)
    # Client idempotency key of the creation request
    request_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class TenantQuota(Base):
    """Per-owner tenant counter; the limit check is a conditional update on this row."""

    __tablename__ = "tenant_quotas"

    owner_id = Column(String(64), primary_key=True)
    tenant_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
