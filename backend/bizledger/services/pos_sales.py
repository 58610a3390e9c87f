"""
POS sale flow: record a paid receipt and make sure the day's shift exists.
"""
import logging
from datetime import date
from typing import Any, Optional, Tuple

from sqlalchemy.orm import Session

from bizledger.core.database import run_in_transaction, run_read
from bizledger.core.errors import InvalidInput
from bizledger.core.retry import RetryPolicy
from bizledger.models.sale import SaleDocument
from bizledger.models.shift import SHIFT_CLOSED, Shift
from bizledger.models.tenant import new_id
from bizledger.services.reconciliation import KIND_REFUND, KIND_SALE, to_money
from bizledger.services.shift_ledger import ensure_open_shift


logger = logging.getLogger(__name__)


def record_sale(
    db: Session,
    tenant_id: str,
    sale_date: date,
    amount: Any,
    payment_method: str = "cash",
    discount_amount: Any = 0,
    kind: str = KIND_SALE,
    recorded_by: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
) -> Tuple[SaleDocument, Shift]:
    """
    Store a paid sale (or refund) document for ``sale_date``.

    The first sale of a business day opens the day's shift. When that day's
    shift is already closed the document is still stored, no new shift is
    created and the closed shift keeps its frozen totals.

    Returns:
        (document, shift for the sale date)
    """
    if kind not in (KIND_SALE, KIND_REFUND):
        raise InvalidInput(f"Unknown document kind: {kind}")
    total = to_money(amount)
    discount = to_money(discount_amount)
    if total <= 0:
        raise InvalidInput("Sale amount must be greater than zero")
    if discount < 0:
        raise InvalidInput("Discount cannot be negative")

    shift = ensure_open_shift(db, tenant_id, sale_date, opened_by=recorded_by, policy=policy)
    if shift.status == SHIFT_CLOSED:
        logger.warning("Sale recorded for business %s on %s after shift %s was closed; not reconciled",
                       tenant_id, sale_date, shift.id)

    document_id = new_id()

    def work(s: Session) -> str:
        # Replayed attempt after an ambiguous commit
        if s.get(SaleDocument, document_id) is not None:
            return document_id
        s.add(SaleDocument(
            id=document_id,
            tenant_id=tenant_id,
            doc_date=sale_date,
            kind=kind,
            status="paid",
            total=total,
            payment_method=(payment_method or "cash").strip().lower(),
            discount_amount=discount,
            recorded_by=recorded_by,
        ))
        s.flush()
        return document_id

    run_in_transaction(db, work, policy=policy, label="record sale")
    document = run_read(db, lambda s: s.get(SaleDocument, document_id), policy=policy, label="sale read-back")
    return document, shift
