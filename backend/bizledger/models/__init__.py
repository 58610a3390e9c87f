from .tenant import Tenant, TenantQuota
from .plan import SubscriptionPlan, UserSubscription, PremiumTrial
from .shift import Shift
from .sale import SaleDocument

__all__ = ["Tenant", "TenantQuota", "SubscriptionPlan", "UserSubscription", "PremiumTrial", "Shift", "SaleDocument"]
