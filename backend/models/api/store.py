"""
Pydantic models for the store (plans, packages, subscriptions, checkout)
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from models.domain.subscription import Currency, CreditPackage, SubscriptionPlan, UserSubscription


class PlanModel(BaseModel):
    """Subscription plan (response, and admin upsert body)"""
    id: str
    name: str
    price: float = Field(ge=0)
    currency: Currency = Currency.USD
    credits: int = Field(default=0, ge=0)
    features: List[str] = []
    stripe_product_id: Optional[str] = None

    model_config = {"from_attributes": True}

    def to_domain(self) -> SubscriptionPlan:
        return SubscriptionPlan(**self.model_dump())


class PackageModel(BaseModel):
    """Credit package (response, and admin upsert body)"""
    id: str
    credits: int = Field(gt=0)
    price: float = Field(ge=0)
    bonus: int = Field(default=0, ge=0)
    best_value: bool = False
    stripe_product_id: Optional[str] = None

    model_config = {"from_attributes": True}

    def to_domain(self) -> CreditPackage:
        return CreditPackage(**self.model_dump())


class PackageResponse(PackageModel):
    total_credits: int

    @classmethod
    def from_domain(cls, package: CreditPackage) -> 'PackageResponse':
        return cls(total_credits=package.total_credits, **PackageModel.model_validate(package).model_dump())


class SubscriptionResponse(BaseModel):
    user_id: str
    plan: PlanModel
    renews_on: datetime
    payment_method: str
    is_admin_assigned: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_domain(cls, subscription: UserSubscription) -> 'SubscriptionResponse':
        return cls.model_validate(subscription)


class CheckoutResponse(BaseModel):
    """Hosted checkout the client should redirect to"""
    session_id: str
    url: str


class SubscribeResponse(BaseModel):
    """Free plans activate immediately; paid plans return a checkout"""
    subscription: Optional[SubscriptionResponse] = None
    checkout: Optional[CheckoutResponse] = None


class AssignPlanRequest(BaseModel):
    plan_id: str
