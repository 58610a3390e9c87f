from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Index

from bizledger.core.timeutil import utcnow
from bizledger.models.tenant import Base, new_id


class SaleDocument(Base):
    """
    Receipt/refund documents written by the documents module.

    The shift ledger only reads rows in ``paid`` status, grouped by
    (tenant_id, doc_date).
    """

    __tablename__ = "sale_documents"
    __table_args__ = (
        Index("ix_sale_documents_tenant_date_status", "tenant_id", "doc_date", "status"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("business_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    doc_date = Column(Date, nullable=False)
    kind = Column(String(10), nullable=False, default="sale")  # sale, refund
    status = Column(String(10), nullable=False, default="paid")  # paid, unpaid, void
    total = Column(Numeric(15, 2), nullable=False, default=0)
    payment_method = Column(String(50), nullable=False, default="cash")  # cash, card, mobile_money, bank_transfer, ...
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)
    recorded_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
