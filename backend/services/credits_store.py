"""
Credits Store
=============

Per-user, reducer-style state container for the credits ledger.

The store holds an in-process projection of what the database already
committed. Every change goes through `dispatch(Action)`; there are no ad hoc
setters. Each dispatched action lands in `history` together with whether it
was applied, so every transition can be audited and tested on its own.
History keeps the most recent entries only, and LOADED entries are recorded
as a summary rather than the full reloaded payload.

Slices:
- LedgerStore: credit balance + append-only transaction list
- UnlockRegistry: content ids the user may view without paying again
- CreatorEarningsLedger: accrued earnings per creator (the user's own sales)

Purchase lifecycle (per content item, buyer's view):

    Locked --PURCHASE_REQUESTED--> Unlocking --PURCHASE_COMMITTED--> Unlocked
                                   Unlocking --PURCHASE_REJECTED---> Locked

Completions carry the request id issued at PURCHASE_REQUESTED; completions
for a request that is no longer pending are ignored as stale.
"""
import logging
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

from models.domain.ledger import (
    CreatorTransaction,
    PurchaseReceipt,
    Transaction,
    TransactionType,
)
from models.domain.subscription import UserSubscription
from services.errors import (
    AlreadyUnlockedError,
    InsufficientCreditsError,
    PurchaseInFlightError,
)
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


# =============================================================================
# ACTIONS
# =============================================================================

class ActionType(str, Enum):
    LOADED = "LOADED"
    CREDITS_ADDED = "CREDITS_ADDED"
    PURCHASE_REQUESTED = "PURCHASE_REQUESTED"
    PURCHASE_COMMITTED = "PURCHASE_COMMITTED"
    PURCHASE_REJECTED = "PURCHASE_REJECTED"
    EARNINGS_ACCRUED = "EARNINGS_ACCRUED"
    SUBSCRIPTION_CHANGED = "SUBSCRIPTION_CHANGED"


@dataclass(frozen=True)
class Action:
    type: ActionType
    payload: Dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None
    at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class AuditEntry:
    action: Action
    applied: bool
    note: Optional[str] = None


# =============================================================================
# SLICES
# =============================================================================

class LedgerStore:
    """Credit balance and append-only transaction log (newest first)"""

    def __init__(self, user_id: str, balance: int = 0):
        self.user_id = user_id
        self.balance = balance
        self._transactions: List[Transaction] = []
        self._ids: Set[str] = set()

    @property
    def transactions(self) -> List[Transaction]:
        return list(self._transactions)

    def credit(self, amount: int, description: str, type: TransactionType) -> Transaction:
        """Increase the balance and append a transaction"""
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive, got {amount}")
        transaction = Transaction(
            user_id=self.user_id,
            type=type,
            amount=amount,
            description=description,
            balance_after=self.balance + amount,
        )
        self.record(transaction)
        return transaction

    def record(self, transaction: Transaction) -> bool:
        """
        Apply a committed transaction.

        The committed balance_after wins over local arithmetic when present.
        Returns False if the transaction was already recorded.
        """
        if transaction.id in self._ids:
            return False
        self._ids.add(transaction.id)
        self._transactions.insert(0, transaction)
        if transaction.balance_after is not None:
            self.balance = transaction.balance_after
        else:
            self.balance += transaction.amount
        return True

    def reset(self, balance: int, transactions: Iterable[Transaction]):
        ordered = sorted(transactions, key=lambda t: t.created_at, reverse=True)
        self.balance = balance
        self._transactions = ordered
        self._ids = {t.id for t in ordered}


class UnlockRegistry:
    """Set of unlocked content ids; grants are permanent"""

    def __init__(self, content_ids: Iterable[str] = ()):
        self._ids: Set[str] = set(content_ids)

    def is_unlocked(self, content_id: str) -> bool:
        return content_id in self._ids

    def grant(self, content_id: str) -> bool:
        """Idempotent add. Returns True if newly granted."""
        if content_id in self._ids:
            return False
        self._ids.add(content_id)
        return True

    def ids(self) -> Set[str]:
        return set(self._ids)

    def __contains__(self, content_id: str) -> bool:
        return self.is_unlocked(content_id)

    def __len__(self) -> int:
        return len(self._ids)


class CreatorEarningsLedger:
    """Monotonic per-creator earnings accumulator with sale records"""

    def __init__(self):
        self._earned: Dict[str, float] = {}
        self._first_accrual: Dict[str, datetime] = {}
        self._records: List[CreatorTransaction] = []
        self._record_ids: Set[str] = set()

    def accrue(self, creator_id: str, amount: float,
               record: Optional[CreatorTransaction] = None,
               at: Optional[datetime] = None) -> float:
        """
        Add earnings for a creator.

        Returns:
            The creator's earned balance after the accrual
        """
        if amount < 0:
            raise ValueError(f"Earnings cannot be negative, got {amount}")
        if record is not None:
            if record.id in self._record_ids:
                return self.earned(creator_id)
            self._record_ids.add(record.id)
            self._records.insert(0, record)
        self._earned[creator_id] = self._earned.get(creator_id, 0.0) + amount
        self._first_accrual.setdefault(creator_id, at or utc_now())
        return self._earned[creator_id]

    def earned(self, creator_id: str) -> float:
        return self._earned.get(creator_id, 0.0)

    def records(self, creator_id: Optional[str] = None) -> List[CreatorTransaction]:
        if creator_id is None:
            return list(self._records)
        return [r for r in self._records if r.creator_id == creator_id]

    def withdrawal_available_at(self, creator_id: str, cooldown_hours: int) -> Optional[datetime]:
        """End of the withdrawal cooldown, counted from the first accrual"""
        started = self._first_accrual.get(creator_id)
        if started is None:
            return None
        return started + timedelta(hours=cooldown_hours)

    def reset(self, creator_id: str, earned: float, records: Iterable[CreatorTransaction],
              first_accrual_at: Optional[datetime] = None):
        ordered = sorted(records, key=lambda r: r.created_at, reverse=True)
        self._earned = {creator_id: earned} if earned or ordered else {}
        self._first_accrual = {}
        if first_accrual_at is not None:
            self._first_accrual[creator_id] = first_accrual_at
        elif ordered:
            self._first_accrual[creator_id] = ordered[-1].created_at
        self._records = ordered
        self._record_ids = {r.id for r in ordered}


# =============================================================================
# STORE
# =============================================================================

@dataclass
class PendingPurchase:
    request_id: str
    content_id: str
    price: int
    requested_at: datetime


class CreditsStore:
    """
    Reducer-style state container for one user.

    Mutations only happen in the `_on_*` handlers reached from `dispatch`.
    """

    def __init__(self, user_id: str, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.user_id = user_id
        self.ledger = LedgerStore(user_id)
        self.unlocks = UnlockRegistry()
        self.earnings = CreatorEarningsLedger()
        self.subscription: Optional[UserSubscription] = None
        self.pending: Dict[str, PendingPurchase] = {}
        self.history: Deque[AuditEntry] = deque(maxlen=history_limit)
        self.loaded = False

        self._handlers = {
            ActionType.LOADED: self._on_loaded,
            ActionType.CREDITS_ADDED: self._on_credits_added,
            ActionType.PURCHASE_REQUESTED: self._on_purchase_requested,
            ActionType.PURCHASE_COMMITTED: self._on_purchase_committed,
            ActionType.PURCHASE_REJECTED: self._on_purchase_rejected,
            ActionType.EARNINGS_ACCRUED: self._on_earnings_accrued,
            ActionType.SUBSCRIPTION_CHANGED: self._on_subscription_changed,
        }

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def balance(self) -> int:
        return self.ledger.balance

    @property
    def earned_balance(self) -> float:
        return self.earnings.earned(self.user_id)

    def is_unlocked(self, content_id: str) -> bool:
        return self.unlocks.is_unlocked(content_id)

    def is_pending(self, content_id: str) -> bool:
        return any(p.content_id == content_id for p in self.pending.values())

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, action: Action) -> bool:
        """
        Apply an action.

        Returns:
            True if the state changed, False if the action was ignored

        Raises:
            CreditsError subclasses when a PURCHASE_REQUESTED is refused;
            the refusal is still recorded in history.
        """
        handler = self._handlers[action.type]
        try:
            applied, note = handler(action)
        except Exception as e:
            self.history.append(AuditEntry(_audited(action), False, str(e)))
            raise

        self.history.append(AuditEntry(_audited(action), applied, note))
        return applied

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _on_loaded(self, action: Action):
        p = action.payload
        self.ledger.reset(p.get("balance", 0), p.get("transactions", ()))
        self.unlocks = UnlockRegistry(p.get("unlocked_ids", ()))
        self.earnings.reset(
            self.user_id,
            p.get("earned", 0.0),
            p.get("creator_transactions", ()),
            p.get("first_accrual_at"),
        )
        self.subscription = p.get("subscription")
        self.loaded = True
        return True, None

    def _on_credits_added(self, action: Action):
        transaction: Optional[Transaction] = action.payload.get("transaction")
        if transaction is None:
            # Local credit, not yet persisted
            self.ledger.credit(
                action.payload["amount"],
                action.payload.get("description", ""),
                action.payload.get("type", TransactionType.REWARD),
            )
            return True, None
        if transaction.amount < 0:
            return False, "credit with negative amount"
        return self.ledger.record(transaction), None

    def _on_purchase_requested(self, action: Action):
        content_id = action.payload["content_id"]
        price = action.payload["price"]

        if self.unlocks.is_unlocked(content_id):
            raise AlreadyUnlockedError(content_id)
        if self.is_pending(content_id):
            raise PurchaseInFlightError(content_id)
        if self.ledger.balance < price:
            raise InsufficientCreditsError(self.ledger.balance, price)

        self.pending[action.request_id] = PendingPurchase(
            request_id=action.request_id,
            content_id=content_id,
            price=price,
            requested_at=action.at,
        )
        return True, None

    def _on_purchase_committed(self, action: Action):
        receipt: PurchaseReceipt = action.payload["receipt"]
        if self.pending.pop(action.request_id, None) is None:
            logger.info(f"Ignoring stale purchase completion {action.request_id} for {receipt.content_id}")
            return False, "stale"

        # balance_after on the transaction is the committed balance
        self.ledger.record(receipt.transaction)
        self.unlocks.grant(receipt.content_id)
        return True, None

    def _on_purchase_rejected(self, action: Action):
        if self.pending.pop(action.request_id, None) is None:
            return False, "stale"
        return True, action.payload.get("reason")

    def _on_earnings_accrued(self, action: Action):
        record: CreatorTransaction = action.payload["creator_transaction"]
        if record.creator_id != self.user_id:
            return False, "not this creator"
        before = len(self.earnings.records())
        self.earnings.accrue(record.creator_id, record.amount_received, record=record,
                             at=record.created_at)
        return len(self.earnings.records()) != before, None

    def _on_subscription_changed(self, action: Action):
        self.subscription = action.payload.get("subscription")
        transaction: Optional[Transaction] = action.payload.get("transaction")
        if transaction is not None:
            self.ledger.record(transaction)
        return True, None


def _audited(action: Action) -> Action:
    """LOADED payloads are summarized to counts"""
    if action.type != ActionType.LOADED:
        return action
    p = action.payload
    return replace(action, payload={
        "balance": p.get("balance", 0),
        "transactions": len(p.get("transactions", ())),
        "unlocked_ids": len(p.get("unlocked_ids", ())),
        "creator_transactions": len(p.get("creator_transactions", ())),
    })


def new_request_id() -> str:
    return f"pr_{uuid.uuid4().hex[:12]}"


class StoreRegistry:
    """
    Process-wide map of user id -> CreditsStore.

    Holds at most max_stores stores; the least recently used one without a
    pending purchase is dropped first. A dropped store is rebuilt by the
    next full reload.
    """

    def __init__(self, max_stores: int = 10000, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.max_stores = max_stores
        self.history_limit = history_limit
        self._stores: "OrderedDict[str, CreditsStore]" = OrderedDict()

    def get(self, user_id: str) -> Optional[CreditsStore]:
        store = self._stores.get(user_id)
        if store is not None:
            self._stores.move_to_end(user_id)
        return store

    def get_or_create(self, user_id: str) -> CreditsStore:
        store = self.get(user_id)
        if store is None:
            store = CreditsStore(user_id, history_limit=self.history_limit)
            self._stores[user_id] = store
            self._evict_idle()
        return store

    def _evict_idle(self):
        excess = len(self._stores) - self.max_stores
        if excess <= 0:
            return
        for user_id in [uid for uid, s in self._stores.items() if not s.pending][:excess]:
            del self._stores[user_id]
            logger.debug(f"Evicted credits store for {user_id}")

    def __len__(self) -> int:
        return len(self._stores)
