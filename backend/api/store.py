"""
Store API router

Catalog, checkout and the current user's subscription. Credits from a paid
checkout arrive through the payment webhook, never from these endpoints.
"""

from fastapi import APIRouter, Depends
from typing import List, Optional
import logging

from models.api.store import (
    CheckoutResponse,
    PackageResponse,
    PlanModel,
    SubscribeResponse,
    SubscriptionResponse,
)
from models.domain.subscription import UserSubscription
from models.domain.user import User
from services.errors import CreditsError
from services.store_service import StoreService
from api.dependencies import get_active_user, get_store_service
from api.errors import http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/store", tags=["store"])


@router.get("/plans", response_model=List[PlanModel])
async def list_plans(store: StoreService = Depends(get_store_service)):
    plans = await store.list_plans()
    return [PlanModel.model_validate(p) for p in plans]


@router.get("/packages", response_model=List[PackageResponse])
async def list_packages(store: StoreService = Depends(get_store_service)):
    packages = await store.list_packages()
    return [PackageResponse.from_domain(p) for p in packages]


@router.post("/checkout/package/{package_id}", response_model=CheckoutResponse)
async def checkout_package(
    package_id: str,
    user: User = Depends(get_active_user),
    store: StoreService = Depends(get_store_service)
):
    """Start a hosted checkout for a credit package"""
    try:
        session = await store.checkout_package(user, package_id)
    except CreditsError as e:
        raise http_error(e)
    return CheckoutResponse(session_id=session.id, url=session.url)


@router.post("/subscribe/{plan_id}", response_model=SubscribeResponse)
async def subscribe(
    plan_id: str,
    user: User = Depends(get_active_user),
    store: StoreService = Depends(get_store_service)
):
    """
    Subscribe to a plan

    The free plan is active immediately; paid plans return a checkout.
    """
    try:
        result = await store.subscribe(user, plan_id)
    except CreditsError as e:
        raise http_error(e)

    if isinstance(result, UserSubscription):
        return SubscribeResponse(subscription=SubscriptionResponse.from_domain(result))
    return SubscribeResponse(checkout=CheckoutResponse(session_id=result.id, url=result.url))


@router.get("/subscription", response_model=Optional[SubscriptionResponse])
async def get_subscription(
    user: User = Depends(get_active_user),
    store: StoreService = Depends(get_store_service)
):
    subscription = await store.get_subscription(user.user_id)
    if subscription is None:
        return None
    return SubscriptionResponse.from_domain(subscription)


@router.delete("/subscription")
async def cancel_subscription(
    user: User = Depends(get_active_user),
    store: StoreService = Depends(get_store_service)
):
    cancelled = await store.cancel_subscription(user)
    return {"cancelled": cancelled}
