from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, condecimal
from sqlalchemy.orm import Session

from bizledger.core.database import get_db, run_read
from bizledger.core.deps import get_principal
from bizledger.core.security import Principal
from bizledger.services.entitlements import list_plans as load_plans, resolve_entitlement


router = APIRouter()


class PlanOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: condecimal(max_digits=10, decimal_places=2)
    currency: str
    billing_period: str
    max_tenants: int

    class Config:
        from_attributes = True


class EntitlementOut(BaseModel):
    plan_name: str
    max_tenants: int
    unlimited: bool
    source: str


@router.get("/", response_model=List[PlanOut])
def list_plans(db: Session = Depends(get_db)):
    return run_read(db, load_plans, label="list plans")


@router.get("/me", response_model=EntitlementOut)
def my_entitlement(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    entitlement = run_read(db, lambda s: resolve_entitlement(s, principal.user_id), label="entitlement lookup")
    return EntitlementOut(
        plan_name=entitlement.plan_name,
        max_tenants=entitlement.max_tenants,
        unlimited=entitlement.unlimited,
        source=entitlement.source,
    )
