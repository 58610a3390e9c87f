from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, condecimal
from sqlalchemy.orm import Session

from bizledger.core.database import get_db
from bizledger.core.deps import get_principal, get_tenant
from bizledger.core.security import Principal
from bizledger.core.timeutil import business_date
from bizledger.models.tenant import Tenant
from bizledger.services import shift_ledger
from bizledger.services.reconciliation import Totals


router = APIRouter()

Money = condecimal(max_digits=15, decimal_places=2)


class ShiftOpenRequest(BaseModel):
    shift_date: Optional[date] = None
    currency: Optional[str] = None
    opening_cash: Optional[Money] = None


class ShiftCloseRequest(BaseModel):
    actual_cash: Money
    discrepancy_notes: Optional[str] = None
    notes: Optional[str] = None


class HandoverRequest(BaseModel):
    employee_id: str


class SuggestedFloatOut(BaseModel):
    opening_cash: Money


class ShiftOut(BaseModel):
    id: str
    tenant_id: str
    shift_date: date
    status: str
    currency: str
    opening_cash: Money
    opened_by: Optional[str] = None
    opened_at: datetime
    current_employee_id: Optional[str] = None
    closed_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    total_sales: Money
    cash_sales: Money
    card_sales: Money
    mobile_money_sales: Money
    bank_transfer_sales: Money
    other_sales: Money
    total_transactions: int
    total_discounts: Money
    total_refunds: Money
    cash_refunds: Money
    expected_cash: Money
    actual_cash: Optional[Money] = None
    cash_discrepancy: Optional[Money] = None
    discrepancy_notes: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class TotalsOut(BaseModel):
    sales_count: int
    gross_sales: Money
    by_method: Dict[str, Money]
    total_discounts: Money
    refund_count: int
    total_refunds: Money
    cash_refunds: Money
    opening_cash: Money
    expected_cash: Money


def _totals_out(totals: Totals) -> TotalsOut:
    return TotalsOut(
        sales_count=totals.sales_count,
        gross_sales=totals.gross_sales,
        by_method=dict(totals.by_method),
        total_discounts=totals.total_discounts,
        refund_count=totals.refund_count,
        total_refunds=totals.total_refunds,
        cash_refunds=totals.cash_refunds,
        opening_cash=totals.opening_cash,
        expected_cash=totals.expected_cash,
    )


def _actor(principal: Principal) -> str:
    return principal.employee_id or principal.user_id


@router.post("/open", response_model=ShiftOut)
def open_shift(
    data: ShiftOpenRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    principal: Principal = Depends(get_principal),
):
    """Open today's shift, or return it if it already exists (day-end screen entry point)."""
    return shift_ledger.ensure_open_shift(
        db,
        tenant.id,
        data.shift_date or business_date(),
        opened_by=_actor(principal),
        currency=data.currency,
        opening_cash=data.opening_cash,
    )


@router.get("/suggested-float", response_model=SuggestedFloatOut)
def suggested_float(db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    """Carried-forward float offered when starting a shift."""
    return SuggestedFloatOut(opening_cash=shift_ledger.suggested_opening_cash(db, tenant.id))


@router.get("/current", response_model=Optional[ShiftOut])
def current_shift(
    shift_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
):
    return shift_ledger.current_shift(db, tenant.id, shift_date or business_date())


@router.get("/", response_model=List[ShiftOut])
def list_shifts(
    limit: int = Query(30, ge=1, le=366),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
):
    return shift_ledger.list_shifts(db, tenant.id, limit=limit)


@router.get("/{shift_id}", response_model=ShiftOut)
def get_shift(shift_id: str, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    return shift_ledger.get_shift(db, tenant.id, shift_id)


@router.get("/{shift_id}/totals", response_model=TotalsOut)
def shift_totals(shift_id: str, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    shift = shift_ledger.get_shift(db, tenant.id, shift_id)
    return _totals_out(shift_ledger.recompute_totals(db, shift))


@router.post("/{shift_id}/refresh", response_model=ShiftOut)
def refresh_shift(shift_id: str, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    return shift_ledger.refresh_totals(db, tenant.id, shift_id)


@router.post("/{shift_id}/close", response_model=ShiftOut)
def close_shift(
    shift_id: str,
    data: ShiftCloseRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    principal: Principal = Depends(get_principal),
):
    return shift_ledger.close_shift(
        db,
        shift_id,
        closed_by=_actor(principal),
        actual_cash=data.actual_cash,
        tenant_id=tenant.id,
        discrepancy_notes=data.discrepancy_notes,
        notes=data.notes,
    )


@router.post("/{shift_id}/handover", response_model=ShiftOut)
def hand_over(
    shift_id: str,
    data: HandoverRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
):
    return shift_ledger.hand_over(db, tenant.id, shift_id, data.employee_id)
