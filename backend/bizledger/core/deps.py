from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from bizledger.core.config import settings
from bizledger.core.database import get_db
from bizledger.core.errors import InvalidInput
from bizledger.core.security import Principal, principal_from_token
from bizledger.models.tenant import Tenant
from bizledger.services.tenant_registry import get_tenant as load_owned_tenant


def get_principal(authorization: Optional[str] = Header(None)) -> Principal:
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1]
    return principal_from_token(token)


def get_active_tenant_id(request: Request) -> Optional[str]:
    return request.headers.get(settings.tenant_header) or None


def get_tenant_id(active_tenant_id: Optional[str] = Depends(get_active_tenant_id)) -> str:
    if not active_tenant_id:
        raise InvalidInput(f"Missing {settings.tenant_header} header")
    return active_tenant_id


def get_tenant(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    tenant_id: str = Depends(get_tenant_id),
) -> Tenant:
    """The business selected by the tenant header, owned by the caller."""
    return load_owned_tenant(db, principal, tenant_id)
