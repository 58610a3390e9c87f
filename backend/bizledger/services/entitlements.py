"""
Entitlement lookup: which plan applies to a user and how many businesses it allows.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from bizledger.core.config import settings
from bizledger.core.timeutil import utcnow
from bizledger.models.plan import UNLIMITED, PremiumTrial, SubscriptionPlan, UserSubscription


logger = logging.getLogger(__name__)

FREE_PLAN = "Free"

DEFAULT_PLANS = [
    {"name": "Free", "description": "Basic features for small businesses", "price": Decimal("0.00"), "max_tenants": 1, "display_order": 1},
    {"name": "Starter", "description": "Essential features for growing businesses", "price": Decimal("9.99"), "max_tenants": 3, "display_order": 2},
    {"name": "Professional", "description": "Advanced features for established businesses", "price": Decimal("29.99"), "max_tenants": 10, "display_order": 3},
    {"name": "Enterprise", "description": "Full feature access for large businesses", "price": Decimal("99.99"), "max_tenants": UNLIMITED, "display_order": 4},
]


@dataclass(frozen=True)
class Entitlement:
    plan_name: str
    max_tenants: int
    source: str = "default"  # subscription, trial, free_plan, default

    @property
    def unlimited(self) -> bool:
        return self.max_tenants == UNLIMITED


def resolve_entitlement(db: Session, user_id: str, now: Optional[datetime] = None) -> Entitlement:
    """
    Resolve the plan for ``user_id`` in this order: an active subscription whose
    window contains ``now``, an active trial ending after ``now``, the "Free"
    plan row, and finally the built-in Free limit.
    """
    now = now or utcnow()

    plan = (
        db.query(SubscriptionPlan)
        .join(UserSubscription, UserSubscription.plan_id == SubscriptionPlan.id)
        .filter(
            UserSubscription.user_id == user_id,
            UserSubscription.status == "active",
            UserSubscription.start_date <= now,
            or_(UserSubscription.end_date.is_(None), UserSubscription.end_date > now),
        )
        .order_by(UserSubscription.start_date.desc())
        .first()
    )
    if plan:
        return _from_plan(plan, "subscription")

    plan = (
        db.query(SubscriptionPlan)
        .join(PremiumTrial, PremiumTrial.plan_id == SubscriptionPlan.id)
        .filter(
            PremiumTrial.user_id == user_id,
            PremiumTrial.status == "active",
            PremiumTrial.end_date > now,
        )
        .order_by(PremiumTrial.start_date.desc())
        .first()
    )
    if plan:
        return _from_plan(plan, "trial")

    plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.name == FREE_PLAN).first()
    if plan:
        return _from_plan(plan, "free_plan")

    return Entitlement(plan_name=FREE_PLAN, max_tenants=settings.free_plan_max_tenants)


def _from_plan(plan: SubscriptionPlan, source: str) -> Entitlement:
    limit = plan.max_tenants if plan.max_tenants is not None else settings.free_plan_max_tenants
    return Entitlement(plan_name=plan.name, max_tenants=limit, source=source)


def list_plans(db: Session):
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.display_order)
        .all()
    )


def seed_default_plans(db: Session) -> None:
    existing = {name for (name,) in db.query(SubscriptionPlan.name).all()}
    missing = [p for p in DEFAULT_PLANS if p["name"] not in existing]
    if not missing:
        return
    for data in missing:
        db.add(SubscriptionPlan(**data))
    db.commit()
    logger.info("Seeded %s subscription plan(s)", len(missing))
