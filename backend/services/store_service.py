"""
Store Service - catalog, checkout and subscriptions

Paid packages and plans go through the payment gateway and are fulfilled
by the verified webhook. The free plan is granted directly. Admins may
assign or cancel any user's plan; all writes land on the same per-user
row, so the latest one wins.
"""
import logging
from typing import List, Optional

from models.domain.subscription import (
    ADMIN_PAYMENT_METHOD,
    CreditPackage,
    SubscriptionPlan,
    UserSubscription,
)
from models.domain.user import User
from services.config_store import Capability, ConfigStore, require_developer
from services.credits_service import CreditsService
from services.errors import CatalogItemNotFoundError, PaymentVerificationError, UserNotFoundError
from services.payments import KIND_CREDITS, KIND_SUBSCRIPTION, CheckoutSession, StripeGateway

logger = logging.getLogger(__name__)

FREE_PAYMENT_METHOD = "Free"
GATEWAY_PAYMENT_METHOD = "Stripe"

FULFILLING_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)


class StoreService:
    def __init__(self, subscription_repo, user_repo, credits: CreditsService,
                 config_store: ConfigStore, gateway: StripeGateway):
        self.subscription_repo = subscription_repo
        self.user_repo = user_repo
        self.credits = credits
        self.config_store = config_store
        self.gateway = gateway

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def list_plans(self) -> List[SubscriptionPlan]:
        return await self.subscription_repo.list_plans()

    async def list_packages(self) -> List[CreditPackage]:
        return await self.subscription_repo.list_packages()

    async def _plan(self, plan_id: str) -> SubscriptionPlan:
        plan = await self.subscription_repo.get_plan(plan_id)
        if not plan:
            raise CatalogItemNotFoundError(plan_id)
        return plan

    async def _package(self, package_id: str) -> CreditPackage:
        package = await self.subscription_repo.get_package(package_id)
        if not package:
            raise CatalogItemNotFoundError(package_id)
        return package

    async def save_plan(self, actor: User, plan: SubscriptionPlan) -> SubscriptionPlan:
        require_developer(actor)
        return await self.subscription_repo.upsert_plan(plan)

    async def save_package(self, actor: User, package: CreditPackage) -> CreditPackage:
        require_developer(actor)
        return await self.subscription_repo.upsert_package(package)

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def checkout_package(self, user: User, package_id: str) -> CheckoutSession:
        await self.config_store.require_capability(user, Capability.STORE)
        package = await self._package(package_id)
        return await self.gateway.create_checkout_session(
            user_id=user.user_id,
            email=user.email,
            kind=KIND_CREDITS,
            item_id=package.id,
            name=f"{package.total_credits} credits",
            unit_amount_cents=int(round(package.price * 100)),
        )

    async def subscribe(self, user: User, plan_id: str):
        """
        Start a subscription.

        Returns:
            UserSubscription for the free plan, CheckoutSession otherwise
        """
        await self.config_store.require_capability(user, Capability.MANAGE_SUBSCRIPTION)
        plan = await self._plan(plan_id)

        if plan.is_free:
            subscription = UserSubscription.start(user.user_id, plan, FREE_PAYMENT_METHOD)
            transaction = await self.subscription_repo.save_subscription(subscription)
            self.credits.apply_subscription_change(user.user_id, subscription, transaction)
            return subscription

        return await self.gateway.create_checkout_session(
            user_id=user.user_id,
            email=user.email,
            kind=KIND_SUBSCRIPTION,
            item_id=plan.id,
            name=f"{plan.name} plan",
            unit_amount_cents=int(round(plan.price * 100)),
            currency=plan.currency.value,
        )

    async def get_subscription(self, user_id: str) -> Optional[UserSubscription]:
        return await self.subscription_repo.get_for_user(user_id)

    async def cancel_subscription(self, user: User) -> bool:
        transaction = await self.subscription_repo.delete_for_user(user.user_id)
        if transaction is None:
            return False
        self.credits.apply_subscription_change(user.user_id, None, transaction)
        return True

    # =========================================================================
    # ADMIN
    # =========================================================================

    async def assign_subscription(self, actor: User, user_id: str, plan_id: str) -> UserSubscription:
        require_developer(actor)
        if not await self.user_repo.get_by_id(user_id):
            raise UserNotFoundError(user_id)
        plan = await self._plan(plan_id)
        subscription = UserSubscription.start(user_id, plan, ADMIN_PAYMENT_METHOD)
        transaction = await self.subscription_repo.save_subscription(subscription)
        self.credits.apply_subscription_change(user_id, subscription, transaction)
        logger.info(f"Admin {actor.user_id} assigned plan {plan_id} to {user_id}")
        return subscription

    async def admin_cancel_subscription(self, actor: User, user_id: str) -> bool:
        require_developer(actor)
        transaction = await self.subscription_repo.delete_for_user(user_id)
        if transaction is None:
            return False
        self.credits.apply_subscription_change(user_id, None, transaction)
        logger.info(f"Admin {actor.user_id} cancelled the subscription of {user_id}")
        return True

    async def list_subscriptions(self, actor: User) -> List[UserSubscription]:
        require_developer(actor)
        return await self.subscription_repo.list_all()

    # =========================================================================
    # WEBHOOK FULFILMENT
    # =========================================================================

    async def handle_payment_event(self, event: dict) -> dict:
        """
        Fulfil a verified gateway event. Safe to receive more than once.

        Only paid sessions are fulfilled: checkout.session.completed with
        payment_status "paid", or checkout.session.async_payment_succeeded
        for delayed payment methods.

        Returns:
            {"status": "fulfilled" | "duplicate" | "ignored", ...}
        """
        event_id = event["id"]
        event_type = event["type"]
        if event_type not in FULFILLING_EVENTS:
            return {"status": "ignored", "event_type": event_type}

        session = event.get("data", {}).get("object", {})
        if session.get("payment_status") != "paid":
            logger.info(f"Payment event {event_id} not paid yet ({session.get('payment_status')})")
            return {"status": "ignored", "event_type": event_type, "reason": "unpaid"}

        metadata = session.get("metadata") or {}
        user_id = metadata.get("user_id") or session.get("client_reference_id")
        kind = metadata.get("kind")
        item_id = metadata.get("item_id")
        if not user_id or not kind or not item_id:
            raise PaymentVerificationError("Checkout session is missing its metadata")

        try:
            transaction = await self._fulfil(event_id, event_type, user_id, kind, item_id)
        except UserNotFoundError:
            # Acknowledged so the gateway stops retrying
            logger.warning(f"Payment event {event_id} names unknown user {user_id}")
            return {"status": "ignored", "event_type": event_type, "reason": "unknown user"}

        if transaction is None:
            return {"status": "duplicate", "event_id": event_id}
        logger.info(f"Fulfilled payment event {event_id} ({kind} {item_id}) for {user_id}")
        return {"status": "fulfilled", "event_id": event_id, "transaction_id": transaction.id}

    async def _fulfil(self, event_id: str, event_type: str, user_id: str,
                      kind: str, item_id: str):
        if kind == KIND_CREDITS:
            package = await self._package(item_id)
            return await self.credits.credit_from_payment(
                event_id, event_type, user_id, package.total_credits,
                f"Purchased {package.total_credits} credits",
            )
        if kind == KIND_SUBSCRIPTION:
            plan = await self._plan(item_id)
            subscription = UserSubscription.start(user_id, plan, GATEWAY_PAYMENT_METHOD)
            transaction = await self.subscription_repo.save_subscription(
                subscription, payment_event_id=event_id
            )
            if transaction is not None:
                self.credits.apply_subscription_change(user_id, subscription, transaction)
            return transaction
        raise PaymentVerificationError(f"Unknown checkout kind {kind}")
