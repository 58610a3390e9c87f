from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from bizledger.core.timeutil import utcnow
from bizledger.models.tenant import Base, new_id


SHIFT_OPEN = "open"
SHIFT_CLOSED = "closed"


class Shift(Base):
    __tablename__ = "pos_shifts"
    # Any row for a date, open or closed, is authoritative for that date
    __table_args__ = (
        UniqueConstraint("tenant_id", "shift_date", name="uq_pos_shifts_tenant_date"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("business_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    shift_date = Column(Date, nullable=False, index=True)
    status = Column(String(10), nullable=False, default=SHIFT_OPEN)
    currency = Column(String(3), nullable=False, default="USD")

    opening_cash = Column(Numeric(15, 2), nullable=False, default=0)
    opened_by = Column(String(64), nullable=True)
    opened_at = Column(DateTime, nullable=False, default=utcnow)
    current_employee_id = Column(String(64), nullable=True)
    closed_by = Column(String(64), nullable=True)
    closed_at = Column(DateTime, nullable=True)

    # Sales summary, running while open and frozen at close
    total_sales = Column(Numeric(15, 2), nullable=False, default=0)
    cash_sales = Column(Numeric(15, 2), nullable=False, default=0)
    card_sales = Column(Numeric(15, 2), nullable=False, default=0)
    mobile_money_sales = Column(Numeric(15, 2), nullable=False, default=0)
    bank_transfer_sales = Column(Numeric(15, 2), nullable=False, default=0)
    other_sales = Column(Numeric(15, 2), nullable=False, default=0)
    total_transactions = Column(Integer, nullable=False, default=0)
    total_discounts = Column(Numeric(15, 2), nullable=False, default=0)
    total_refunds = Column(Numeric(15, 2), nullable=False, default=0)
    cash_refunds = Column(Numeric(15, 2), nullable=False, default=0)
    expected_cash = Column(Numeric(15, 2), nullable=False, default=0)

    actual_cash = Column(Numeric(15, 2), nullable=True)
    cash_discrepancy = Column(Numeric(15, 2), nullable=True)
    discrepancy_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
