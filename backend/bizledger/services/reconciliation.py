"""
Reconciliation calculator for POS shifts.

Pure functions over paid sale records: no I/O, no hidden state. Every amount
is quantised to cents before it is summed, so the totals are exact and do not
depend on the order the records arrive in.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

CASH = "cash"
CARD = "card"
MOBILE_MONEY = "mobile_money"
BANK_TRANSFER = "bank_transfer"
OTHER = "other"
PAYMENT_METHODS = (CASH, CARD, MOBILE_MONEY, BANK_TRANSFER)

KIND_SALE = "sale"
KIND_REFUND = "refund"


def to_money(value: Any) -> Decimal:
    """Convert to a cent-quantised Decimal; floats go through ``str`` first."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def normalize_method(method: Optional[str]) -> str:
    key = (method or "").strip().lower().replace(" ", "_").replace("-", "_")
    return key if key in PAYMENT_METHODS else OTHER


@dataclass(frozen=True)
class SaleRecord:
    amount: Decimal
    payment_method: str = CASH
    discount: Decimal = ZERO
    kind: str = KIND_SALE


@dataclass(frozen=True)
class Totals:
    sales_count: int = 0
    gross_sales: Decimal = ZERO
    by_method: Dict[str, Decimal] = field(default_factory=lambda: {m: ZERO for m in PAYMENT_METHODS + (OTHER,)})
    total_discounts: Decimal = ZERO
    refund_count: int = 0
    total_refunds: Decimal = ZERO
    cash_refunds: Decimal = ZERO
    opening_cash: Decimal = ZERO
    expected_cash: Decimal = ZERO

    @property
    def cash_amount(self) -> Decimal:
        return self.by_method[CASH]

    def as_shift_fields(self) -> Dict[str, Any]:
        """Column values for ``Shift`` rows."""
        return {
            "total_sales": self.gross_sales,
            "cash_sales": self.by_method[CASH],
            "card_sales": self.by_method[CARD],
            "mobile_money_sales": self.by_method[MOBILE_MONEY],
            "bank_transfer_sales": self.by_method[BANK_TRANSFER],
            "other_sales": self.by_method[OTHER],
            "total_transactions": self.sales_count,
            "total_discounts": self.total_discounts,
            "total_refunds": self.total_refunds,
            "cash_refunds": self.cash_refunds,
            "expected_cash": self.expected_cash,
        }


def compute_totals(records: Iterable[SaleRecord], opening_cash: Any = ZERO) -> Totals:
    """
    Total a day's paid sale records.

    Args:
        records: paid sale and refund records for one tenant and date
        opening_cash: float carried into the drawer at shift open

    Returns:
        Totals with per-method amounts and
        ``expected_cash = opening_cash + cash sales - cash refunds``.
        An empty input yields all-zero totals (plus the opening cash).
    """
    by_method = {m: ZERO for m in PAYMENT_METHODS + (OTHER,)}
    sales_count = 0
    gross = ZERO
    discounts = ZERO
    refund_count = 0
    refunds = ZERO
    cash_refunds = ZERO

    for record in records:
        amount = to_money(record.amount)
        method = normalize_method(record.payment_method)
        if record.kind == KIND_REFUND:
            refund_count += 1
            refunds += amount
            if method == CASH:
                cash_refunds += amount
            continue
        sales_count += 1
        gross += amount
        by_method[method] += amount
        discounts += to_money(record.discount)

    opening = to_money(opening_cash)
    return Totals(
        sales_count=sales_count,
        gross_sales=gross,
        by_method=by_method,
        total_discounts=discounts,
        refund_count=refund_count,
        total_refunds=refunds,
        cash_refunds=cash_refunds,
        opening_cash=opening,
        expected_cash=opening + by_method[CASH] - cash_refunds,
    )


def discrepancy(actual_cash: Any, expected_cash: Any) -> Decimal:
    """Counted minus expected; negative means the drawer is short."""
    return to_money(actual_cash) - to_money(expected_cash)
