"""
Shift ledger: lifecycle of a cash-register shift (none -> open -> closed).

A shift is keyed by (tenant, date). Sales are never written to the shift
directly; totals are derived from the paid documents of that date by the
reconciliation calculator. Closing freezes the totals together with the
counted cash and is terminal.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from bizledger.core.config import settings
from bizledger.core.database import run_in_transaction, run_read
from bizledger.core.errors import InvalidInput, InvalidState, NotFound, PersistenceError
from bizledger.core.retry import RetryPolicy
from bizledger.core.timeutil import utcnow
from bizledger.models.shift import SHIFT_CLOSED, SHIFT_OPEN, Shift
from bizledger.models.tenant import Tenant
from bizledger.services.reconciliation import ZERO, Totals, compute_totals, discrepancy, to_money
from bizledger.services.sales_feed import SalesFeed, default_feed


logger = logging.getLogger(__name__)


def _find_for_date(db: Session, tenant_id: str, shift_date: date) -> Optional[Shift]:
    return (
        db.query(Shift)
        .filter(Shift.tenant_id == tenant_id, Shift.shift_date == shift_date)
        .first()
    )


def carried_forward_cash(db: Session, tenant_id: str) -> Decimal:
    """Counted cash of the most recently closed shift, else its closing cash, else zero."""
    last = (
        db.query(Shift)
        .filter(Shift.tenant_id == tenant_id, Shift.status == SHIFT_CLOSED)
        .order_by(Shift.shift_date.desc(), Shift.closed_at.desc())
        .first()
    )
    if last is None:
        return ZERO
    if last.actual_cash is not None:
        return to_money(last.actual_cash)
    if last.expected_cash is not None:
        return to_money(last.expected_cash)
    return ZERO


def suggested_opening_cash(db: Session, tenant_id: str, policy: Optional[RetryPolicy] = None) -> Decimal:
    """Float offered to the cashier when starting a shift."""
    return run_read(db, lambda s: carried_forward_cash(s, tenant_id), policy=policy, label="suggested float")


def _read_back(db: Session, shift_id: str, policy: Optional[RetryPolicy]) -> Shift:
    def work(s: Session) -> Shift:
        shift = s.get(Shift, shift_id, populate_existing=True)
        if shift is None:
            raise PersistenceError("Failed to retrieve the shift that was just written")
        return shift

    return run_read(db, work, policy=policy, label="shift read-back")


def ensure_open_shift(
    db: Session,
    tenant_id: str,
    shift_date: date,
    opened_by: Optional[str],
    currency: Optional[str] = None,
    opening_cash: Any = None,
    policy: Optional[RetryPolicy] = None,
) -> Shift:
    """
    Return the shift for (tenant, date), creating an open one if none exists.

    Idempotent: an existing row, open or closed, is returned unchanged, so the
    opening float is never reset. ``opening_cash`` is the float counted by the
    cashier and only applies when the row is created; without it the float is
    carried forward from the last closed shift. A concurrent insert that wins
    the unique (tenant, date) race is re-read and returned.
    """
    entered = None
    if opening_cash is not None:
        entered = to_money(opening_cash)
        if entered < 0:
            raise InvalidInput("Opening cash cannot be negative")

    def work(s: Session):
        existing = _find_for_date(s, tenant_id, shift_date)
        if existing is not None:
            return existing.id, False
        tenant = s.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound(f"Business {tenant_id} not found")
        float_cash = entered if entered is not None else carried_forward_cash(s, tenant_id)
        shift = Shift(
            tenant_id=tenant_id,
            shift_date=shift_date,
            status=SHIFT_OPEN,
            opening_cash=float_cash,
            expected_cash=float_cash,
            opened_by=opened_by,
            current_employee_id=opened_by,
            opened_at=utcnow(),
            currency=currency or tenant.currency or settings.default_currency,
        )
        s.add(shift)
        s.flush()
        return shift.id, True

    def on_conflict(s: Session, exc):
        existing = _find_for_date(s, tenant_id, shift_date)
        if existing is None:
            raise PersistenceError("Could not open the shift, try again.", cause=exc)
        logger.info("Shift for business %s on %s was opened concurrently, reusing %s",
                    tenant_id, shift_date, existing.id)
        return existing.id, False

    shift_id, created = run_in_transaction(db, work, on_conflict=on_conflict, policy=policy, label="open shift")
    shift = _read_back(db, shift_id, policy)
    if created:
        logger.info("Opened shift %s for business %s on %s with float %s",
                    shift.id, tenant_id, shift_date, shift.opening_cash)
    return shift


def recompute_totals(
    db: Session,
    shift: Shift,
    feed: Optional[SalesFeed] = None,
    policy: Optional[RetryPolicy] = None,
) -> Totals:
    """Totals of the shift's paid sales as of now. Does not write."""
    feed = feed or default_feed
    records = run_read(
        db,
        lambda s: feed.paid_records(s, shift.tenant_id, shift.shift_date),
        policy=policy,
        label="load sales",
    )
    return compute_totals(records, opening_cash=shift.opening_cash)


def refresh_totals(
    db: Session,
    tenant_id: str,
    shift_id: str,
    feed: Optional[SalesFeed] = None,
    policy: Optional[RetryPolicy] = None,
) -> Shift:
    """Persist running totals on an open shift."""
    feed = feed or default_feed

    def work(s: Session) -> None:
        shift = s.get(Shift, shift_id)
        if shift is None or shift.tenant_id != tenant_id:
            raise NotFound(f"Shift {shift_id} not found")
        if shift.status != SHIFT_OPEN:
            raise InvalidState("Shift is closed; its totals are frozen")
        totals = compute_totals(feed.paid_records(s, tenant_id, shift.shift_date), opening_cash=shift.opening_cash)
        result = s.execute(
            update(Shift)
            .where(Shift.id == shift_id, Shift.status == SHIFT_OPEN)
            .values(updated_at=utcnow(), **totals.as_shift_fields())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidState("Shift was closed while its totals were being refreshed")

    run_in_transaction(db, work, policy=policy, label="refresh shift totals")
    return _read_back(db, shift_id, policy)


def close_shift(
    db: Session,
    shift_id: str,
    closed_by: Optional[str],
    actual_cash: Any,
    tenant_id: Optional[str] = None,
    discrepancy_notes: Optional[str] = None,
    notes: Optional[str] = None,
    feed: Optional[SalesFeed] = None,
    policy: Optional[RetryPolicy] = None,
) -> Shift:
    """
    Close an open shift and freeze its reconciliation.

    Totals are recomputed at the moment of closing. ``cash_discrepancy`` is
    ``actual_cash - expected_cash`` where ``expected_cash = opening_cash +
    cash sales - cash refunds``.

    The write only succeeds while the row is still ``open``; a missing shift,
    an already-closed shift, or a close that lost a race all raise
    ``InvalidState`` and leave the stored record untouched. A retried attempt
    that finds the close committed by an earlier attempt of the same call
    returns the closed shift.
    """
    if actual_cash is None:
        raise InvalidInput("Enter the actual cash counted in the drawer")
    counted = to_money(actual_cash)
    if counted < 0:
        raise InvalidInput("Actual cash cannot be negative")
    feed = feed or default_feed
    # Fixed across retries so a retry can recognise its own earlier commit
    closed_at = utcnow()

    def work(s: Session) -> bool:
        shift = s.get(Shift, shift_id, populate_existing=True)
        if shift is None or (tenant_id is not None and shift.tenant_id != tenant_id):
            raise InvalidState(f"Shift {shift_id} does not exist and cannot be closed")
        if shift.status != SHIFT_OPEN:
            if _closed_by_this_call(shift, closed_by, closed_at, counted):
                return False
            raise InvalidState("Shift is already closed")
        totals = compute_totals(
            feed.paid_records(s, shift.tenant_id, shift.shift_date),
            opening_cash=shift.opening_cash,
        )
        result = s.execute(
            update(Shift)
            .where(Shift.id == shift_id, Shift.status == SHIFT_OPEN)
            .values(
                status=SHIFT_CLOSED,
                closed_by=closed_by,
                closed_at=closed_at,
                actual_cash=counted,
                cash_discrepancy=discrepancy(counted, totals.expected_cash),
                discrepancy_notes=discrepancy_notes,
                notes=notes,
                updated_at=closed_at,
                **totals.as_shift_fields(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidState("Shift was closed by another session")
        return True

    closed_now = run_in_transaction(db, work, policy=policy, label="close shift")
    shift = _read_back(db, shift_id, policy)
    if closed_now:
        logger.info("Closed shift %s: expected %s, counted %s, discrepancy %s",
                    shift_id, shift.expected_cash, counted, shift.cash_discrepancy)
    else:
        logger.info("Close of shift %s was already committed by an earlier attempt", shift_id)
    return shift


def _closed_by_this_call(shift: Shift, closed_by: Optional[str], closed_at, counted: Decimal) -> bool:
    return (
        shift.closed_at == closed_at
        and shift.closed_by == closed_by
        and to_money(shift.actual_cash) == counted
    )


def hand_over(
    db: Session,
    tenant_id: str,
    shift_id: str,
    employee_id: str,
    policy: Optional[RetryPolicy] = None,
) -> Shift:
    """Hand an open shift to another employee."""

    def work(s: Session) -> None:
        shift = s.get(Shift, shift_id)
        if shift is None or shift.tenant_id != tenant_id:
            raise NotFound(f"Shift {shift_id} not found")
        result = s.execute(
            update(Shift)
            .where(Shift.id == shift_id, Shift.status == SHIFT_OPEN)
            .values(current_employee_id=employee_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidState("Only an open shift can be handed over")

    run_in_transaction(db, work, policy=policy, label="hand over shift")
    logger.info("Shift %s handed over to employee %s", shift_id, employee_id)
    return _read_back(db, shift_id, policy)


def get_shift(db: Session, tenant_id: str, shift_id: str, policy: Optional[RetryPolicy] = None) -> Shift:
    shift = run_read(db, lambda s: s.get(Shift, shift_id), policy=policy, label="get shift")
    if shift is None or shift.tenant_id != tenant_id:
        raise NotFound(f"Shift {shift_id} not found")
    return shift


def current_shift(db: Session, tenant_id: str, shift_date: date, policy: Optional[RetryPolicy] = None) -> Optional[Shift]:
    return run_read(db, lambda s: _find_for_date(s, tenant_id, shift_date), policy=policy, label="current shift")


def list_shifts(db: Session, tenant_id: str, limit: int = 30, policy: Optional[RetryPolicy] = None) -> List[Shift]:
    return run_read(
        db,
        lambda s: (
            s.query(Shift)
            .filter(Shift.tenant_id == tenant_id)
            .order_by(Shift.shift_date.desc())
            .limit(limit)
            .all()
        ),
        policy=policy,
        label="list shifts",
    )
