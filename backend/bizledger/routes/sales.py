from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, condecimal
from sqlalchemy.orm import Session

from bizledger.core.database import get_db
from bizledger.core.deps import get_principal, get_tenant
from bizledger.core.security import Principal
from bizledger.core.timeutil import business_date
from bizledger.models.tenant import Tenant
from bizledger.services.pos_sales import record_sale


router = APIRouter()


class SaleIn(BaseModel):
    amount: condecimal(max_digits=15, decimal_places=2)
    payment_method: str = "cash"
    discount_amount: condecimal(max_digits=15, decimal_places=2) = 0
    kind: str = "sale"  # sale, refund
    sale_date: Optional[date] = None


class SaleOut(BaseModel):
    id: str
    doc_date: date
    kind: str
    status: str
    total: condecimal(max_digits=15, decimal_places=2)
    payment_method: str
    discount_amount: condecimal(max_digits=15, decimal_places=2)
    shift_id: str
    shift_status: str


@router.post("/", response_model=SaleOut, status_code=201)
def create_sale(
    data: SaleIn,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    principal: Principal = Depends(get_principal),
):
    document, shift = record_sale(
        db,
        tenant.id,
        data.sale_date or business_date(),
        amount=data.amount,
        payment_method=data.payment_method,
        discount_amount=data.discount_amount,
        kind=data.kind,
        recorded_by=principal.employee_id or principal.user_id,
    )
    return SaleOut(
        id=document.id,
        doc_date=document.doc_date,
        kind=document.kind,
        status=document.status,
        total=document.total,
        payment_method=document.payment_method,
        discount_amount=document.discount_amount,
        shift_id=shift.id,
        shift_status=shift.status,
    )
