from datetime import date
from typing import List, Protocol

from sqlalchemy.orm import Session

from bizledger.models.sale import SaleDocument
from bizledger.services.reconciliation import SaleRecord, to_money


class SalesFeed(Protocol):
    """Read-only source of a tenant's paid sale records for one business day."""

    def paid_records(self, db: Session, tenant_id: str, day: date) -> List[SaleRecord]:
        ...


class DocumentSalesFeed:
    """Reads paid receipts and refunds from the documents table."""

    def paid_records(self, db: Session, tenant_id: str, day: date) -> List[SaleRecord]:
        rows = (
            db.query(SaleDocument)
            .filter(
                SaleDocument.tenant_id == tenant_id,
                SaleDocument.doc_date == day,
                SaleDocument.status == "paid",
            )
            .all()
        )
        return [
            SaleRecord(
                amount=to_money(row.total),
                payment_method=row.payment_method,
                discount=to_money(row.discount_amount),
                kind=row.kind,
            )
            for row in rows
        ]


default_feed = DocumentSalesFeed()
