"""
Credits store (reducer) tests
=============================

Each action type applied to a bare CreditsStore, without repositories.
"""

import pytest

from models.domain.content import MediaCount
from models.domain.ledger import CreatorTransaction, PurchaseReceipt, Transaction, TransactionType
from services.credits_store import (
    Action,
    ActionType,
    CreatorEarningsLedger,
    CreditsStore,
    StoreRegistry,
    UnlockRegistry,
    new_request_id,
)
from services.errors import AlreadyUnlockedError, InsufficientCreditsError, PurchaseInFlightError


def loaded_store(balance=0, unlocked=(), user_id="buyer"):
    store = CreditsStore(user_id)
    store.dispatch(Action(ActionType.LOADED, {"balance": balance, "unlocked_ids": set(unlocked)}))
    return store


def receipt_for(store, content_id, price, creator_id="creator", commission=0.5):
    new_balance = store.balance - price
    transaction = Transaction(
        user_id=store.user_id,
        type=TransactionType.PURCHASE,
        amount=-price,
        description="Unlocked: Card",
        balance_after=new_balance,
        reference_id=content_id,
    )
    record = CreatorTransaction(
        creator_id=creator_id,
        card_id=content_id,
        card_title="Card",
        buyer_id=store.user_id,
        amount_received=price * (1 - commission),
        original_price=price,
        commission_rate=commission,
        media_count=MediaCount(images=1),
    )
    return PurchaseReceipt(
        buyer_id=store.user_id,
        content_id=content_id,
        creator_id=creator_id,
        price=price,
        earnings=record.amount_received,
        new_balance=new_balance,
        transaction=transaction,
        creator_transaction=record,
    )


# =============================================================================
# LOAD / CREDITS
# =============================================================================

class TestLoadAndCredits:

    def test_loaded_replaces_state(self):
        store = loaded_store(balance=50, unlocked={"ci_aaaaaaaa"})
        store.dispatch(Action(ActionType.LOADED, {"balance": 80, "unlocked_ids": set()}))

        assert store.loaded
        assert store.balance == 80
        assert not store.is_unlocked("ci_aaaaaaaa")

    def test_credits_added_from_committed_transaction(self):
        store = loaded_store(balance=100)
        tx = Transaction(user_id="buyer", type=TransactionType.REWARD, amount=100,
                         description="Reward credits", balance_after=200)

        assert store.dispatch(Action(ActionType.CREDITS_ADDED, {"transaction": tx}))
        assert store.balance == 200
        assert store.ledger.transactions[0] == tx

    def test_same_transaction_is_recorded_once(self):
        store = loaded_store(balance=100)
        tx = Transaction(user_id="buyer", type=TransactionType.REWARD, amount=100,
                         description="Reward credits", balance_after=200)

        store.dispatch(Action(ActionType.CREDITS_ADDED, {"transaction": tx}))
        applied = store.dispatch(Action(ActionType.CREDITS_ADDED, {"transaction": tx}))

        assert not applied
        assert store.balance == 200
        assert len(store.ledger.transactions) == 1

    def test_local_credit_must_be_positive(self):
        store = loaded_store(balance=10)

        with pytest.raises(ValueError):
            store.dispatch(Action(ActionType.CREDITS_ADDED, {"amount": 0}))

        assert store.balance == 10
        assert store.history[-1].applied is False

    def test_local_credit_appends_transaction(self):
        store = loaded_store(balance=10)
        store.dispatch(Action(ActionType.CREDITS_ADDED, {"amount": 100, "description": "Reward credits"}))

        assert store.balance == 110
        assert store.ledger.transactions[0].balance_after == 110
        assert store.ledger.transactions[0].type == TransactionType.REWARD


# =============================================================================
# PURCHASE LIFECYCLE
# =============================================================================

class TestPurchaseLifecycle:

    def test_insufficient_balance_refused_without_mutation(self):
        store = loaded_store(balance=100)

        with pytest.raises(InsufficientCreditsError) as exc:
            store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                                  {"content_id": "ci_aaaaaaaa", "price": 150},
                                  request_id=new_request_id()))

        assert exc.value.balance == 100
        assert exc.value.price == 150
        assert store.balance == 100
        assert store.pending == {}
        assert not store.is_unlocked("ci_aaaaaaaa")
        assert store.ledger.transactions == []
        assert store.history[-1].applied is False

    def test_already_unlocked_refused(self):
        store = loaded_store(balance=500, unlocked={"ci_aaaaaaaa"})

        with pytest.raises(AlreadyUnlockedError):
            store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                                  {"content_id": "ci_aaaaaaaa", "price": 10},
                                  request_id=new_request_id()))
        assert store.balance == 500

    def test_second_request_while_pending_refused(self):
        store = loaded_store(balance=500)
        store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                              {"content_id": "ci_aaaaaaaa", "price": 10},
                              request_id="pr_first"))

        with pytest.raises(PurchaseInFlightError):
            store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                                  {"content_id": "ci_aaaaaaaa", "price": 10},
                                  request_id="pr_second"))
        assert list(store.pending) == ["pr_first"]

    def test_commit_applies_committed_balance_and_unlock(self):
        store = loaded_store(balance=500)
        store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                              {"content_id": "ci_aaaaaaaa", "price": 200},
                              request_id="pr_1"))

        receipt = receipt_for(store, "ci_aaaaaaaa", 200)
        assert store.dispatch(Action(ActionType.PURCHASE_COMMITTED, {"receipt": receipt}, request_id="pr_1"))

        assert store.balance == 300
        assert store.is_unlocked("ci_aaaaaaaa")
        assert store.pending == {}
        assert store.ledger.transactions[0].amount == -200

    def test_reject_returns_to_locked(self):
        store = loaded_store(balance=500)
        store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                              {"content_id": "ci_aaaaaaaa", "price": 200},
                              request_id="pr_1"))

        assert store.dispatch(Action(ActionType.PURCHASE_REJECTED, {"reason": "db down"}, request_id="pr_1"))
        assert store.balance == 500
        assert not store.is_unlocked("ci_aaaaaaaa")
        assert not store.is_pending("ci_aaaaaaaa")
        assert store.history[-1].note == "db down"

    def test_stale_completion_ignored(self):
        store = loaded_store(balance=500)
        receipt = receipt_for(store, "ci_aaaaaaaa", 200)

        applied = store.dispatch(Action(ActionType.PURCHASE_COMMITTED, {"receipt": receipt}, request_id="pr_gone"))

        assert not applied
        assert store.balance == 500
        assert not store.is_unlocked("ci_aaaaaaaa")
        assert store.history[-1].note == "stale"

    def test_completion_after_reject_is_stale(self):
        store = loaded_store(balance=500)
        store.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                              {"content_id": "ci_aaaaaaaa", "price": 200},
                              request_id="pr_1"))
        store.dispatch(Action(ActionType.PURCHASE_REJECTED, {"reason": "timeout"}, request_id="pr_1"))

        receipt = receipt_for(store, "ci_aaaaaaaa", 200)
        assert not store.dispatch(Action(ActionType.PURCHASE_COMMITTED, {"receipt": receipt}, request_id="pr_1"))
        assert store.balance == 500

    def test_history_keeps_recent_entries_only(self):
        store = CreditsStore("buyer", history_limit=5)
        transactions = [
            Transaction(user_id="buyer", type=TransactionType.REWARD, amount=1, description="Reward")
            for _ in range(200)
        ]

        for _ in range(10):
            store.dispatch(Action(ActionType.LOADED, {"balance": 200, "transactions": transactions}))

        assert len(store.history) == 5
        assert store.history[-1].action.payload["transactions"] == 200
        assert store.balance == 200
        assert len(store.ledger.transactions) == 200


# =============================================================================
# EARNINGS
# =============================================================================

class TestEarnings:

    def test_earnings_accrued_for_own_sales_only(self):
        store = loaded_store(user_id="creator")
        mine = receipt_for(loaded_store(balance=500), "ci_aaaaaaaa", 200, creator_id="creator")
        theirs = receipt_for(loaded_store(balance=500), "ci_bbbbbbbb", 200, creator_id="someone")

        assert store.dispatch(Action(ActionType.EARNINGS_ACCRUED, {"creator_transaction": mine.creator_transaction}))
        assert not store.dispatch(Action(ActionType.EARNINGS_ACCRUED, {"creator_transaction": theirs.creator_transaction}))
        assert store.earned_balance == 100.0

    def test_same_sale_accrued_once(self):
        store = loaded_store(user_id="creator")
        record = receipt_for(loaded_store(balance=500), "ci_aaaaaaaa", 200).creator_transaction

        store.dispatch(Action(ActionType.EARNINGS_ACCRUED, {"creator_transaction": record}))
        store.dispatch(Action(ActionType.EARNINGS_ACCRUED, {"creator_transaction": record}))

        assert store.earned_balance == 100.0
        assert len(store.earnings.records("creator")) == 1

    def test_ledger_is_monotonic(self):
        ledger = CreatorEarningsLedger()
        ledger.accrue("creator", 10)
        ledger.accrue("creator", 0)

        with pytest.raises(ValueError):
            ledger.accrue("creator", -5)
        assert ledger.earned("creator") == 10

    def test_withdrawal_cooldown_from_first_accrual(self):
        ledger = CreatorEarningsLedger()
        assert ledger.withdrawal_available_at("creator", 24) is None

        record = receipt_for(loaded_store(balance=500), "ci_aaaaaaaa", 200).creator_transaction
        ledger.accrue("creator", record.amount_received, record=record, at=record.created_at)

        available = ledger.withdrawal_available_at("creator", 24)
        assert (available - record.created_at).total_seconds() == 24 * 3600


# =============================================================================
# REGISTRIES
# =============================================================================

class TestRegistries:

    def test_unlock_grant_is_idempotent(self):
        unlocks = UnlockRegistry()
        assert unlocks.grant("ci_aaaaaaaa")
        assert not unlocks.grant("ci_aaaaaaaa")
        assert len(unlocks) == 1
        assert "ci_aaaaaaaa" in unlocks

    def test_store_registry_reuses_stores(self):
        registry = StoreRegistry()
        store = registry.get_or_create("u1")

        assert registry.get_or_create("u1") is store
        assert registry.get("u2") is None
        assert len(registry) == 1

    def test_store_registry_drops_least_recently_used(self):
        registry = StoreRegistry(max_stores=2)
        registry.get_or_create("u1")
        registry.get_or_create("u2")
        registry.get("u1")

        registry.get_or_create("u3")

        assert len(registry) == 2
        assert registry.get("u2") is None
        assert registry.get("u1") is not None

    def test_store_registry_keeps_stores_mid_purchase(self):
        registry = StoreRegistry(max_stores=1)
        busy = registry.get_or_create("u1")
        busy.dispatch(Action(ActionType.LOADED, {"balance": 100}))
        busy.dispatch(Action(ActionType.PURCHASE_REQUESTED,
                             {"content_id": "ci_aaaaaaaa", "price": 10},
                             request_id="pr_1"))

        registry.get_or_create("u2")

        assert registry.get("u1") is busy
        assert len(registry) == 1

    def test_request_ids_are_unique(self):
        assert new_request_id() != new_request_id()
        assert new_request_id().startswith("pr_")
