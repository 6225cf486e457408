"""
Store tests
===========

Subscriptions, webhook fulfilment, admin grants, rewards and payouts.
"""

import httpx
import pytest

from models.domain.ledger import TransactionType
from models.domain.platform import SidebarVisibility
from models.domain.subscription import ADMIN_PAYMENT_METHOD, CreditPackage, SubscriptionPlan
from services.errors import CatalogItemNotFoundError, PermissionDeniedError, UserNotFoundError
from services.payments import CheckoutSession, KIND_CREDITS, KIND_SUBSCRIPTION, StripeGateway
from services.store_service import StoreService
from tests.fakes import add_item, add_user


def completed_event(event_id, user_id, kind, item_id, payment_status="paid",
                    event_type="checkout.session.completed"):
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": {
            "id": "cs_test",
            "payment_status": payment_status,
            "client_reference_id": user_id,
            "metadata": {"user_id": user_id, "kind": kind, "item_id": item_id},
        }},
    }


@pytest.fixture
def gateway():
    def handler(request):
        return httpx.Response(200, json={"id": "cs_test_1", "url": "https://checkout.test/cs_test_1"})
    return StripeGateway("sk_test", api_base="https://stripe.test/v1", transport=httpx.MockTransport(handler))


@pytest.fixture
def catalog(db):
    db.plans["free"] = SubscriptionPlan(id="free", name="Free", price=0, credits=0)
    db.plans["pro"] = SubscriptionPlan(id="pro", name="Pro", price=9.99, credits=500,
                                       features=["HD cards"])
    db.packages["pkg_100"] = CreditPackage(id="pkg_100", credits=100, price=0.99, bonus=10)
    return db


@pytest.fixture
def store(subscription_repo, user_repo, credits, config_store, gateway, catalog):
    return StoreService(subscription_repo, user_repo, credits, config_store, gateway)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_free_plan_applies_directly(self, db, store):
        user = add_user(db, "fan@funfans.com", balance=5)

        subscription = await store.subscribe(user, "free")

        assert db.subscriptions[user.user_id].plan.id == "free"
        assert subscription.renews_on > subscription.created_at
        tx = db.transactions_for(user.user_id)[-1]
        assert tx.amount == 0
        assert tx.type == TransactionType.SUBSCRIPTION
        assert db.balances[user.user_id] == 5

    @pytest.mark.asyncio
    async def test_paid_plan_goes_to_checkout(self, db, store):
        user = add_user(db, "fan@funfans.com")

        result = await store.subscribe(user, "pro")

        assert isinstance(result, CheckoutSession)
        assert user.user_id not in db.subscriptions
        assert db.balances[user.user_id] == 0

    @pytest.mark.asyncio
    async def test_unknown_plan(self, db, store):
        user = add_user(db, "fan@funfans.com")
        with pytest.raises(CatalogItemNotFoundError):
            await store.subscribe(user, "platinum")

    @pytest.mark.asyncio
    async def test_cancel_records_zero_transaction(self, db, store, credits):
        user = add_user(db, "fan@funfans.com", balance=5)
        await store.subscribe(user, "free")
        live = await credits.load(user.user_id)

        assert await store.cancel_subscription(user)

        assert user.user_id not in db.subscriptions
        assert db.transactions_for(user.user_id)[-1].amount == 0
        assert live.subscription is None
        assert not await store.cancel_subscription(user)

    @pytest.mark.asyncio
    async def test_admin_assignment_is_last_write_wins(self, db, store, developer):
        user = add_user(db, "fan@funfans.com")
        await store.subscribe(user, "free")

        assigned = await store.assign_subscription(developer, user.user_id, "pro")

        assert assigned.is_admin_assigned
        assert db.subscriptions[user.user_id].plan.id == "pro"
        assert db.subscriptions[user.user_id].payment_method == ADMIN_PAYMENT_METHOD
        assert db.balances[user.user_id] == 500

        # A later user choice replaces the admin assignment
        await store.subscribe(user, "free")
        assert db.subscriptions[user.user_id].plan.id == "free"

    @pytest.mark.asyncio
    async def test_admin_only(self, db, store):
        user = add_user(db, "fan@funfans.com")
        with pytest.raises(PermissionDeniedError):
            await store.assign_subscription(user, user.user_id, "pro")
        with pytest.raises(PermissionDeniedError):
            await store.list_subscriptions(user)

    @pytest.mark.asyncio
    async def test_assign_to_unknown_user(self, store, developer):
        with pytest.raises(UserNotFoundError):
            await store.assign_subscription(developer, "missing", "pro")


# =============================================================================
# WEBHOOK FULFILMENT
# =============================================================================

class TestPaymentEvents:

    @pytest.mark.asyncio
    async def test_checkout_creates_no_credits(self, db, store):
        user = add_user(db, "fan@funfans.com")

        session = await store.checkout_package(user, "pkg_100")

        assert session.id == "cs_test_1"
        assert db.balances[user.user_id] == 0

    @pytest.mark.asyncio
    async def test_package_credited_once(self, db, store, credits):
        user = add_user(db, "fan@funfans.com")
        live = await credits.load(user.user_id)
        event = completed_event("evt_1", user.user_id, KIND_CREDITS, "pkg_100")

        first = await store.handle_payment_event(event)
        second = await store.handle_payment_event(event)

        assert first["status"] == "fulfilled"
        assert second["status"] == "duplicate"
        assert db.balances[user.user_id] == 110
        assert live.balance == 110
        assert len(db.transactions_for(user.user_id)) == 1

    @pytest.mark.asyncio
    async def test_subscription_fulfilled_once(self, db, store):
        user = add_user(db, "fan@funfans.com")
        event = completed_event("evt_2", user.user_id, KIND_SUBSCRIPTION, "pro")

        await store.handle_payment_event(event)
        result = await store.handle_payment_event(event)

        assert result["status"] == "duplicate"
        assert db.subscriptions[user.user_id].plan.id == "pro"
        assert db.balances[user.user_id] == 500

    @pytest.mark.asyncio
    async def test_other_events_ignored(self, db, store):
        result = await store.handle_payment_event({"id": "evt_3", "type": "charge.refunded"})
        assert result["status"] == "ignored"
        assert db.payment_events == set()

    @pytest.mark.asyncio
    async def test_unpaid_session_grants_nothing(self, db, store):
        user = add_user(db, "fan@funfans.com")
        event = completed_event("evt_4", user.user_id, KIND_CREDITS, "pkg_100", payment_status="unpaid")

        result = await store.handle_payment_event(event)

        assert result["status"] == "ignored"
        assert db.balances[user.user_id] == 0
        assert db.payment_events == set()

    @pytest.mark.asyncio
    async def test_delayed_payment_credited_when_it_succeeds(self, db, store):
        user = add_user(db, "fan@funfans.com")
        await store.handle_payment_event(
            completed_event("evt_5", user.user_id, KIND_CREDITS, "pkg_100", payment_status="unpaid")
        )

        result = await store.handle_payment_event(completed_event(
            "evt_6", user.user_id, KIND_CREDITS, "pkg_100",
            event_type="checkout.session.async_payment_succeeded",
        ))

        assert result["status"] == "fulfilled"
        assert db.balances[user.user_id] == 110

    @pytest.mark.asyncio
    async def test_unknown_user_acknowledged(self, db, store):
        missing = "00000000-0000-0000-0000-000000000000"

        credits_result = await store.handle_payment_event(
            completed_event("evt_7", missing, KIND_CREDITS, "pkg_100")
        )
        plan_result = await store.handle_payment_event(
            completed_event("evt_8", missing, KIND_SUBSCRIPTION, "pro")
        )

        assert credits_result["status"] == "ignored"
        assert plan_result["status"] == "ignored"
        assert db.payment_events == set()
        assert missing not in db.subscriptions


# =============================================================================
# CREDITS AND PAYOUTS
# =============================================================================

class TestCreditsOperations:

    @pytest.mark.asyncio
    async def test_reward(self, db, credits):
        user = add_user(db, "fan@funfans.com", balance=10)

        tx = await credits.add_reward(user)

        assert tx.amount == 100
        assert tx.type == TransactionType.REWARD
        assert db.balances[user.user_id] == 110

    @pytest.mark.asyncio
    async def test_reward_disabled(self, db, credits):
        db.sidebar = SidebarVisibility(earn_credits=False)
        user = add_user(db, "fan@funfans.com")

        with pytest.raises(PermissionDeniedError):
            await credits.add_reward(user)

    @pytest.mark.asyncio
    async def test_admin_grant(self, db, credits, developer):
        user = add_user(db, "fan@funfans.com")
        live = await credits.load(user.user_id)

        await credits.grant_credits(developer, user.user_id, 250)

        assert db.balances[user.user_id] == 250
        assert live.balance == 250
        with pytest.raises(ValueError):
            await credits.grant_credits(developer, user.user_id, 0)
        with pytest.raises(UserNotFoundError):
            await credits.grant_credits(developer, "missing", 10)
        with pytest.raises(PermissionDeniedError):
            await credits.grant_credits(user, user.user_id, 10)

    @pytest.mark.asyncio
    async def test_payouts(self, db, credits, orchestrator, creator):
        db.sidebar = SidebarVisibility(creator_payouts=True)
        buyer = add_user(db, "buyer@funfans.com", balance=500)
        item = add_item(db, creator, price=200)
        await orchestrator.purchase(buyer, item.id)

        payouts = await credits.payouts(creator)

        assert payouts["earned_credits"] == 100.0
        assert payouts["estimated_value_usd"] == 1.0
        assert payouts["withdrawal_available_at"] is not None
        assert payouts["can_withdraw"] is False
        assert [r.card_id for r in payouts["transactions"]] == [item.id]

    @pytest.mark.asyncio
    async def test_payouts_disabled_by_default(self, credits, creator):
        with pytest.raises(PermissionDeniedError):
            await credits.payouts(creator)
