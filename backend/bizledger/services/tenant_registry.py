"""
Tenant registry: creation, update, listing and deletion of business profiles.

Creation and update are separate operations with separate preconditions;
creation never falls back to updating an existing row.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from bizledger.core.config import settings
from bizledger.core.database import run_in_transaction, run_read
from bizledger.core.errors import (
    DuplicateName,
    Forbidden,
    InvalidInput,
    InvalidState,
    LimitExceeded,
    NotFound,
    PersistenceError,
    Unauthenticated,
)
from bizledger.core.retry import RetryPolicy
from bizledger.core.security import Principal, require_same_user
from bizledger.core.timeutil import utcnow
from bizledger.models.sale import SaleDocument
from bizledger.models.shift import Shift
from bizledger.models.tenant import Tenant, TenantQuota, new_id
from bizledger.services.entitlements import Entitlement, resolve_entitlement
from bizledger.services.reconciliation import to_money


logger = logging.getLogger(__name__)

TENANT_FIELDS = (
    "name",
    "business_type",
    "stage",
    "location",
    "capital",
    "currency",
    "owner_name",
    "phone",
    "email",
    "address",
    "logo_url",
)


def _clean_attributes(attributes: Dict[str, Any], creating: bool) -> Dict[str, Any]:
    unknown = set(attributes) - set(TENANT_FIELDS)
    if unknown:
        raise InvalidInput(f"Unknown business fields: {', '.join(sorted(unknown))}")

    data: Dict[str, Any] = {}
    for key, value in attributes.items():
        if isinstance(value, str):
            value = value.strip() or None
        data[key] = value

    if creating or "name" in data:
        if not data.get("name"):
            raise InvalidInput("Business name is required")
    if data.get("capital") is not None:
        data["capital"] = to_money(data["capital"])
    elif "capital" in data:
        data.pop("capital")
    if data.get("currency"):
        currency = data["currency"].upper()
        if len(currency) != 3:
            raise InvalidInput("currency must be a 3-letter ISO 4217 code")
        data["currency"] = currency
    elif "currency" in data:
        data.pop("currency")
    if creating:
        data.setdefault("currency", settings.default_currency)
    return data


def _find_replay(db: Session, owner_id: str, tenant_id: str, request_id: Optional[str]) -> Optional[Tenant]:
    """A row already written by an earlier attempt of the same request."""
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id, Tenant.owner_id == owner_id).first()
    if tenant is None and request_id:
        tenant = (
            db.query(Tenant)
            .filter(Tenant.owner_id == owner_id, Tenant.request_id == request_id)
            .first()
        )
    return tenant


def _reserve_slot(db: Session, owner_id: str, entitlement: Entitlement) -> None:
    """
    Take one tenant slot for ``owner_id`` or raise ``LimitExceeded``.

    The compare and the increment are one conditional UPDATE, so concurrent
    creations are serialised on the quota row by the store.
    """
    if db.get(TenantQuota, owner_id) is None:
        count = db.query(func.count(Tenant.id)).filter(Tenant.owner_id == owner_id).scalar() or 0
        db.add(TenantQuota(owner_id=owner_id, tenant_count=count))
        db.flush()

    stmt = update(TenantQuota).where(TenantQuota.owner_id == owner_id)
    if not entitlement.unlimited:
        stmt = stmt.where(TenantQuota.tenant_count < entitlement.max_tenants)
    stmt = stmt.values(tenant_count=TenantQuota.tenant_count + 1, updated_at=utcnow())
    result = db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        raise LimitExceeded(entitlement.plan_name, entitlement.max_tenants)


def _read_back(db: Session, tenant_id: str, policy: Optional[RetryPolicy]) -> Tenant:
    def work(s: Session) -> Tenant:
        tenant = s.get(Tenant, tenant_id, populate_existing=True)
        if tenant is None:
            raise PersistenceError("Failed to retrieve the business profile that was just written")
        return tenant

    return run_read(db, work, policy=policy, label="tenant read-back")


def create_tenant(
    db: Session,
    principal: Optional[Principal],
    user_id: str,
    attributes: Dict[str, Any],
    request_id: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
) -> Tenant:
    """
    Create exactly one business profile for ``user_id``.

    Args:
        db: database session
        principal: authenticated caller; must be ``user_id``
        user_id: owner of the new business
        attributes: business fields (``name`` required)
        request_id: optional client idempotency key; replaying it returns the
            business created by the first request
        policy: retry policy for transient store failures

    Returns:
        The new Tenant, read back by its generated id.

    Raises:
        Unauthenticated, Forbidden, InvalidInput, LimitExceeded, DuplicateName,
        PersistenceError
    """
    require_same_user(principal, user_id)
    data = _clean_attributes(attributes, creating=True)
    entitlement = run_read(db, lambda s: resolve_entitlement(s, user_id), policy=policy, label="entitlement lookup")

    # Fixed across retries so a retried insert collides with its own earlier commit
    tenant_id = new_id()

    def work(s: Session) -> str:
        existing = _find_replay(s, user_id, tenant_id, request_id)
        if existing is not None:
            return existing.id
        _reserve_slot(s, user_id, entitlement)
        s.add(Tenant(id=tenant_id, owner_id=user_id, request_id=request_id, **data))
        s.flush()
        return tenant_id

    def on_conflict(s: Session, exc) -> str:
        existing = _find_replay(s, user_id, tenant_id, request_id)
        if existing is not None:
            return existing.id
        if s.query(Tenant.id).filter(Tenant.owner_id == user_id, Tenant.name == data["name"]).first():
            raise DuplicateName(data["name"])
        raise PersistenceError("Concurrent update while creating the business, try again.", cause=exc)

    created_id = run_in_transaction(db, work, on_conflict=on_conflict, policy=policy, label="create tenant")
    tenant = _read_back(db, created_id, policy)
    if created_id == tenant_id:
        logger.info("Created business %s for user %s (%s plan, limit %s)",
                    created_id, user_id, entitlement.plan_name, entitlement.max_tenants)
    else:
        logger.info("Replayed creation request %s for user %s -> business %s", request_id, user_id, created_id)
    return tenant


def update_tenant(
    db: Session,
    principal: Optional[Principal],
    tenant_id: str,
    attributes: Dict[str, Any],
    policy: Optional[RetryPolicy] = None,
) -> Tenant:
    if principal is None:
        raise Unauthenticated("Not authenticated")
    data = _clean_attributes(attributes, creating=False)

    def work(s: Session) -> str:
        tenant = s.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound(f"Business {tenant_id} not found")
        if tenant.owner_id != principal.user_id:
            raise Forbidden("You do not own this business")
        for key, value in data.items():
            setattr(tenant, key, value)
        s.flush()
        return tenant.id

    def on_conflict(s: Session, exc) -> str:
        if "name" in data:
            raise DuplicateName(data["name"])
        raise PersistenceError(cause=exc)

    run_in_transaction(db, work, on_conflict=on_conflict, policy=policy, label="update tenant")
    return _read_back(db, tenant_id, policy)


def list_tenants(
    db: Session,
    principal: Optional[Principal],
    user_id: str,
    policy: Optional[RetryPolicy] = None,
) -> List[Tenant]:
    """All businesses for the user, newest first."""
    require_same_user(principal, user_id)
    return run_read(
        db,
        lambda s: (
            s.query(Tenant)
            .filter(Tenant.owner_id == user_id)
            .order_by(Tenant.created_at.desc(), Tenant.id.desc())
            .all()
        ),
        policy=policy,
        label="list tenants",
    )


def default_tenant(
    db: Session,
    principal: Optional[Principal],
    user_id: str,
    policy: Optional[RetryPolicy] = None,
) -> Optional[Tenant]:
    """The current business is the newest one; users may own several."""
    tenants = list_tenants(db, principal, user_id, policy=policy)
    return tenants[0] if tenants else None


def get_tenant(
    db: Session,
    principal: Optional[Principal],
    tenant_id: str,
    policy: Optional[RetryPolicy] = None,
) -> Tenant:
    if principal is None:
        raise Unauthenticated("Not authenticated")
    tenant = run_read(db, lambda s: s.get(Tenant, tenant_id), policy=policy, label="get tenant")
    if tenant is None:
        raise NotFound(f"Business {tenant_id} not found")
    if tenant.owner_id != principal.user_id:
        raise Forbidden("You do not own this business")
    return tenant


def delete_tenant(
    db: Session,
    principal: Optional[Principal],
    tenant_id: str,
    active_tenant_id: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
) -> None:
    if principal is None:
        raise Unauthenticated("Not authenticated")
    if active_tenant_id and tenant_id == active_tenant_id:
        raise InvalidState("This business is currently active. Switch to another business before deleting it.")

    get_tenant(db, principal, tenant_id, policy=policy)

    def work(s: Session) -> None:
        tenant = s.get(Tenant, tenant_id)
        if tenant is None:
            # Already removed, by an earlier attempt whose commit reply was lost
            return
        s.query(SaleDocument).filter(SaleDocument.tenant_id == tenant_id).delete(synchronize_session=False)
        s.query(Shift).filter(Shift.tenant_id == tenant_id).delete(synchronize_session=False)
        s.delete(tenant)
        s.execute(
            update(TenantQuota)
            .where(TenantQuota.owner_id == principal.user_id, TenantQuota.tenant_count > 0)
            .values(tenant_count=TenantQuota.tenant_count - 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    run_in_transaction(db, work, policy=policy, label="delete tenant")
    logger.info("Deleted business %s for user %s", tenant_id, principal.user_id)
