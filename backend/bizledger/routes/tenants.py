from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, condecimal
from sqlalchemy.orm import Session

from bizledger.core.database import get_db
from bizledger.core.deps import get_active_tenant_id, get_principal
from bizledger.core.security import Principal
from bizledger.services import tenant_registry


router = APIRouter()


class TenantFields(BaseModel):
    business_type: Optional[str] = None
    stage: Optional[str] = None
    location: Optional[str] = None
    capital: Optional[condecimal(max_digits=15, decimal_places=2)] = None
    currency: Optional[str] = None
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None


class TenantCreate(TenantFields):
    user_id: str
    name: str
    request_id: Optional[str] = None


class TenantUpdate(TenantFields):
    name: Optional[str] = None


class TenantOut(BaseModel):
    id: str
    owner_id: str
    name: str
    business_type: Optional[str] = None
    stage: Optional[str] = None
    location: Optional[str] = None
    capital: condecimal(max_digits=15, decimal_places=2)
    currency: str
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


@router.post("/", response_model=TenantOut, status_code=201)
def create_tenant(
    data: TenantCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    attributes = data.model_dump(exclude={"user_id", "request_id"}, exclude_none=True)
    return tenant_registry.create_tenant(db, principal, data.user_id, attributes, request_id=data.request_id)


@router.get("/", response_model=List[TenantOut])
def list_tenants(
    user_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return tenant_registry.list_tenants(db, principal, user_id or principal.user_id)


@router.get("/default", response_model=Optional[TenantOut])
def default_tenant(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    return tenant_registry.default_tenant(db, principal, principal.user_id)


@router.get("/{tenant_id}", response_model=TenantOut)
def get_tenant(tenant_id: str, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    return tenant_registry.get_tenant(db, principal, tenant_id)


@router.patch("/{tenant_id}", response_model=TenantOut)
def update_tenant(
    tenant_id: str,
    data: TenantUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return tenant_registry.update_tenant(db, principal, tenant_id, data.model_dump(exclude_unset=True))


@router.delete("/{tenant_id}", status_code=204)
def delete_tenant(
    tenant_id: str,
    active_tenant_id: Optional[str] = Depends(get_active_tenant_id),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    # The tenant header carries the caller's active business, if any
    tenant_registry.delete_tenant(db, principal, tenant_id, active_tenant_id=active_tenant_id)
    return Response(status_code=204)
