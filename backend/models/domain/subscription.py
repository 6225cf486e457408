"""
Store catalog and subscription domain models

Storage: PostgreSQL (subscription_plans, credit_packages, user_subscriptions)
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional

from utils.datetime_utils import utc_now, add_months

ADMIN_PAYMENT_METHOD = "Admin Assigned"


class Currency(str, Enum):
    USD = "USD"
    BRL = "BRL"
    EUR = "EUR"


@dataclass
class SubscriptionPlan:
    """A plan in the store catalog"""
    id: str
    name: str
    price: float
    currency: Currency = Currency.USD
    credits: int = 0
    features: List[str] = field(default_factory=list)
    stripe_product_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.currency, str):
            self.currency = Currency(self.currency)
        if self.price < 0:
            raise ValueError("Plan price cannot be negative")
        if self.credits < 0:
            raise ValueError("Plan credit grant cannot be negative")

    @property
    def is_free(self) -> bool:
        return self.price == 0


@dataclass
class UserSubscription:
    """
    Snapshot of a plan held by a user.

    At most one per user: the user id is the storage key, so a later write
    (user-initiated or admin-assigned) replaces the earlier one.
    """
    user_id: str
    plan: SubscriptionPlan
    renews_on: datetime
    payment_method: str
    created_at: Optional[datetime] = None

    @classmethod
    def start(cls, user_id: str, plan: SubscriptionPlan, payment_method: str,
              now: Optional[datetime] = None) -> 'UserSubscription':
        """New subscription renewing one calendar month from now"""
        now = now or utc_now()
        return cls(
            user_id=user_id,
            plan=replace(plan, features=list(plan.features)),
            renews_on=add_months(now, 1),
            payment_method=payment_method,
            created_at=now,
        )

    @property
    def is_admin_assigned(self) -> bool:
        return self.payment_method == ADMIN_PAYMENT_METHOD


@dataclass
class CreditPackage:
    """A credit pack in the store catalog"""
    id: str
    credits: int
    price: float
    bonus: int = 0
    best_value: bool = False
    stripe_product_id: Optional[str] = None

    def __post_init__(self):
        if self.credits <= 0:
            raise ValueError("Credit package must grant credits")
        if self.price < 0 or self.bonus < 0:
            raise ValueError("Credit package price and bonus cannot be negative")

    @property
    def total_credits(self) -> int:
        return self.credits + self.bonus
