from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from bizledger.core.errors import InvalidInput, InvalidState, LedgerError, NotFound
from bizledger.core.retry import RetryPolicy
from bizledger.core.timeutil import utcnow
from bizledger.models.sale import SaleDocument
from bizledger.models.shift import SHIFT_CLOSED, SHIFT_OPEN, Shift
from bizledger.services.pos_sales import record_sale
from bizledger.services.shift_ledger import (
    close_shift,
    current_shift,
    ensure_open_shift,
    get_shift,
    hand_over,
    list_shifts,
    recompute_totals,
    refresh_totals,
    suggested_opening_cash,
)

DAY = date(2026, 10, 19)


def _sale(db, tenant, amount, method="cash", day=DAY, policy=None, **kwargs):
    document, shift = record_sale(db, tenant.id, day, amount, payment_method=method, policy=policy, **kwargs)
    return document, shift


def _shift_count(db, tenant_id):
    return db.query(Shift).filter(Shift.tenant_id == tenant_id).count()


def test_ensure_open_shift_is_idempotent(db, tenant, fast_retry):
    first = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    second = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-2", policy=fast_retry)

    assert first.id == second.id
    assert second.status == SHIFT_OPEN
    assert second.opened_by == "emp-1"
    assert second.opening_cash == Decimal("0")
    assert second.currency == "USD"
    assert _shift_count(db, tenant.id) == 1


def test_unknown_business_cannot_open_a_shift(db, fast_retry):
    with pytest.raises(NotFound):
        ensure_open_shift(db, "missing", DAY, opened_by="emp-1", policy=fast_retry)


def test_opening_float_carries_forward_counted_cash(db, tenant, fast_retry):
    yesterday = DAY - timedelta(days=1)
    shift = ensure_open_shift(db, tenant.id, yesterday, opened_by="emp-1", policy=fast_retry)
    close_shift(db, shift.id, "emp-1", Decimal("150"), policy=fast_retry)

    today = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    assert today.opening_cash == Decimal("150.00")
    assert today.expected_cash == Decimal("150.00")


def test_opening_float_falls_back_to_expected_cash(db, tenant, fast_retry):
    now = utcnow()
    db.add(Shift(
        tenant_id=tenant.id,
        shift_date=DAY - timedelta(days=3),
        status=SHIFT_CLOSED,
        opened_at=now,
        closed_at=now,
        expected_cash=Decimal("80.00"),
        actual_cash=None,
    ))
    db.commit()

    today = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    assert today.opening_cash == Decimal("80.00")


def test_closed_shift_for_the_day_is_returned_unchanged(db, tenant, fast_retry):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    close_shift(db, shift.id, "emp-1", Decimal("0"), policy=fast_retry)

    again = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-2", policy=fast_retry)
    assert again.id == shift.id
    assert again.status == SHIFT_CLOSED
    assert _shift_count(db, tenant.id) == 1


def test_close_reports_discrepancy(db, tenant, fast_retry):
    yesterday = DAY - timedelta(days=1)
    previous = ensure_open_shift(db, tenant.id, yesterday, opened_by="emp-1", policy=fast_retry)
    close_shift(db, previous.id, "emp-1", Decimal("100"), policy=fast_retry)

    _sale(db, tenant, "200", policy=fast_retry)
    _, shift = _sale(db, tenant, "50", policy=fast_retry)
    _sale(db, tenant, "30", method="card", policy=fast_retry)

    closed = close_shift(db, shift.id, "emp-1", Decimal("340"), discrepancy_notes="short", policy=fast_retry)

    assert closed.status == SHIFT_CLOSED
    assert closed.opening_cash == Decimal("100.00")
    assert closed.cash_sales == Decimal("250.00")
    assert closed.card_sales == Decimal("30.00")
    assert closed.total_sales == Decimal("280.00")
    assert closed.total_transactions == 3
    assert closed.expected_cash == Decimal("350.00")
    assert closed.actual_cash == Decimal("340.00")
    assert closed.cash_discrepancy == Decimal("-10.00")
    assert closed.discrepancy_notes == "short"
    assert closed.closed_by == "emp-1"
    assert closed.closed_at is not None


def test_close_requires_counted_cash(db, tenant, fast_retry):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    with pytest.raises(InvalidInput):
        close_shift(db, shift.id, "emp-1", None, policy=fast_retry)
    with pytest.raises(InvalidInput):
        close_shift(db, shift.id, "emp-1", Decimal("-1"), policy=fast_retry)
    assert get_shift(db, tenant.id, shift.id, policy=fast_retry).status == SHIFT_OPEN


def test_second_close_is_rejected_and_changes_nothing(db, tenant, fast_retry):
    _, shift = _sale(db, tenant, "20", policy=fast_retry)
    first = close_shift(db, shift.id, "emp-1", Decimal("20"), policy=fast_retry)
    frozen = (first.status, first.actual_cash, first.cash_discrepancy, first.closed_by, first.closed_at)

    with pytest.raises(InvalidState):
        close_shift(db, shift.id, "emp-2", Decimal("999"), policy=fast_retry)

    again = get_shift(db, tenant.id, shift.id, policy=fast_retry)
    db.refresh(again)
    assert (again.status, again.actual_cash, again.cash_discrepancy, again.closed_by, again.closed_at) == frozen


def test_closing_a_missing_shift_is_an_invalid_state(db, tenant, fast_retry):
    with pytest.raises(InvalidState):
        close_shift(db, "missing", "emp-1", Decimal("0"), policy=fast_retry)


def test_closing_another_business_shift_is_refused(db, tenant, fast_retry):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    with pytest.raises(InvalidState):
        close_shift(db, shift.id, "emp-1", Decimal("0"), tenant_id="other-business", policy=fast_retry)


def test_sales_after_close_do_not_change_the_closed_shift(db, tenant, fast_retry):
    _, shift = _sale(db, tenant, "40", policy=fast_retry)
    close_shift(db, shift.id, "emp-1", Decimal("40"), policy=fast_retry)

    document, late_shift = _sale(db, tenant, "15", policy=fast_retry)

    assert document.total == Decimal("15.00")
    assert late_shift.id == shift.id
    assert late_shift.status == SHIFT_CLOSED
    assert late_shift.total_sales == Decimal("40.00")
    assert _shift_count(db, tenant.id) == 1
    with pytest.raises(InvalidState):
        refresh_totals(db, tenant.id, shift.id, policy=fast_retry)


def test_recompute_totals_does_not_write(db, tenant, fast_retry):
    _, shift = _sale(db, tenant, "25", policy=fast_retry)
    _sale(db, tenant, "5", method="mobile money", policy=fast_retry)

    totals = recompute_totals(db, shift, policy=fast_retry)
    assert totals.gross_sales == Decimal("30.00")
    assert totals.sales_count == 2

    stored = get_shift(db, tenant.id, shift.id, policy=fast_retry)
    db.refresh(stored)
    assert stored.total_sales == Decimal("0")


def test_refresh_totals_persists_running_totals(db, tenant, fast_retry):
    _, shift = _sale(db, tenant, "25", policy=fast_retry)
    _sale(db, tenant, "5", method="mobile money", discount_amount="1.50", policy=fast_retry)
    _sale(db, tenant, "10", kind="refund", policy=fast_retry)

    refreshed = refresh_totals(db, tenant.id, shift.id, policy=fast_retry)
    assert refreshed.status == SHIFT_OPEN
    assert refreshed.total_sales == Decimal("30.00")
    assert refreshed.mobile_money_sales == Decimal("5.00")
    assert refreshed.total_discounts == Decimal("1.50")
    assert refreshed.total_refunds == Decimal("10.00")
    assert refreshed.cash_refunds == Decimal("10.00")
    assert refreshed.expected_cash == Decimal("15.00")


def test_only_paid_documents_count(db, tenant, fast_retry):
    _, shift = _sale(db, tenant, "25", policy=fast_retry)
    db.add(SaleDocument(tenant_id=tenant.id, doc_date=DAY, status="unpaid", total=Decimal("500")))
    db.add(SaleDocument(tenant_id=tenant.id, doc_date=DAY, status="void", total=Decimal("70")))
    db.add(SaleDocument(tenant_id=tenant.id, doc_date=DAY - timedelta(days=1), status="paid", total=Decimal("90")))
    db.commit()

    closed = close_shift(db, shift.id, "emp-1", Decimal("25"), policy=fast_retry)
    assert closed.total_sales == Decimal("25.00")
    assert closed.cash_discrepancy == Decimal("0")


def test_record_sale_validates_input(db, tenant, fast_retry):
    with pytest.raises(InvalidInput):
        _sale(db, tenant, "0", policy=fast_retry)
    with pytest.raises(InvalidInput):
        _sale(db, tenant, "10", discount_amount="-1", policy=fast_retry)
    with pytest.raises(InvalidInput):
        _sale(db, tenant, "10", kind="layaway", policy=fast_retry)
    assert _shift_count(db, tenant.id) == 0


def test_hand_over_changes_the_current_employee(db, tenant, fast_retry):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    handed = hand_over(db, tenant.id, shift.id, "emp-2", policy=fast_retry)
    assert handed.current_employee_id == "emp-2"
    assert handed.opened_by == "emp-1"


def test_hand_over_requires_an_open_shift(db, tenant, fast_retry):
    with pytest.raises(NotFound):
        hand_over(db, tenant.id, "missing", "emp-2", policy=fast_retry)

    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    close_shift(db, shift.id, "emp-1", Decimal("0"), policy=fast_retry)
    with pytest.raises(InvalidState):
        hand_over(db, tenant.id, shift.id, "emp-2", policy=fast_retry)


def test_get_shift_is_tenant_scoped(db, tenant, fast_retry):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    with pytest.raises(NotFound):
        get_shift(db, "other-business", shift.id, policy=fast_retry)


def test_current_and_listed_shifts(db, tenant, fast_retry):
    assert current_shift(db, tenant.id, DAY, policy=fast_retry) is None
    for offset in (2, 0, 1):
        ensure_open_shift(db, tenant.id, DAY - timedelta(days=offset), opened_by="emp-1", policy=fast_retry)

    assert current_shift(db, tenant.id, DAY, policy=fast_retry).shift_date == DAY
    dates = [s.shift_date for s in list_shifts(db, tenant.id, policy=fast_retry)]
    assert dates == [DAY, DAY - timedelta(days=1), DAY - timedelta(days=2)]
    assert len(list_shifts(db, tenant.id, limit=2, policy=fast_retry)) == 2


def test_concurrent_opens_share_one_shift(db, tenant, session_factory):
    policy = RetryPolicy(max_attempts=25, backoff_base=0.01, backoff_max=0.1)

    def attempt(n):
        session = session_factory()
        try:
            return ensure_open_shift(session, tenant.id, DAY, opened_by=f"emp-{n}", policy=policy).id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=6) as pool:
        ids = list(pool.map(attempt, range(6)))

    assert len(set(ids)) == 1
    db.expire_all()
    assert _shift_count(db, tenant.id) == 1


def test_concurrent_closes_have_one_winner(db, tenant, session_factory, fast_retry):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=fast_retry)
    policy = RetryPolicy(max_attempts=25, backoff_base=0.01, backoff_max=0.1)

    def attempt(n):
        session = session_factory()
        try:
            close_shift(session, shift.id, f"emp-{n}", Decimal(n), policy=policy)
            return "closed"
        except LedgerError as e:
            return e.kind
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(attempt, range(4)))

    assert outcomes.count("closed") == 1
    assert outcomes.count("invalid_state") == 3
    db.expire_all()
    stored = db.get(Shift, shift.id)
    assert stored.status == SHIFT_CLOSED
    assert stored.closed_by == "emp-%d" % outcomes.index("closed")


def test_entered_opening_float_wins_over_carry_forward(db, tenant, fast_retry):
    yesterday = DAY - timedelta(days=1)
    previous = ensure_open_shift(db, tenant.id, yesterday, opened_by="emp-1", policy=fast_retry)
    close_shift(db, previous.id, "emp-1", Decimal("150"), policy=fast_retry)
    assert suggested_opening_cash(db, tenant.id, policy=fast_retry) == Decimal("150.00")

    today = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", opening_cash="120.5", policy=fast_retry)
    assert today.opening_cash == Decimal("120.50")
    assert today.expected_cash == Decimal("120.50")


def test_reopening_never_resets_the_entered_float(db, tenant, fast_retry):
    first = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", opening_cash=Decimal("75"), policy=fast_retry)
    again = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-2", opening_cash=Decimal("500"), policy=fast_retry)
    assert again.id == first.id
    assert again.opening_cash == Decimal("75.00")


def test_negative_opening_float_is_rejected(db, tenant, fast_retry):
    with pytest.raises(InvalidInput):
        ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", opening_cash="-5", policy=fast_retry)
    assert _shift_count(db, tenant.id) == 0


def test_ambiguous_close_commit_is_reported_as_closed(db, tenant, monkeypatch):
    shift = ensure_open_shift(db, tenant.id, DAY, opened_by="emp-1", policy=RetryPolicy(max_attempts=3, backoff_base=0))
    real_commit = db.commit
    calls = {"n": 0}

    def commit_then_lose_reply():
        calls["n"] += 1
        real_commit()
        if calls["n"] == 1:
            raise OperationalError("COMMIT", {}, Exception("server closed the connection"))

    monkeypatch.setattr(db, "commit", commit_then_lose_reply)
    closed = close_shift(db, shift.id, "emp-1", Decimal("10"), policy=RetryPolicy(max_attempts=3, backoff_base=0))

    assert calls["n"] == 2
    assert closed.status == SHIFT_CLOSED
    assert closed.actual_cash == Decimal("10.00")
    assert closed.closed_by == "emp-1"
