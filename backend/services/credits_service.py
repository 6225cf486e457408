"""
Credits Service - keeps per-user stores reconciled with PostgreSQL

The database is authoritative. Stores are rebuilt by full reload (LOADED)
and only receive committed changes afterwards; a failed write never
reaches a store.
"""
import logging
from typing import Optional

from models.domain.ledger import Transaction, TransactionType
from models.domain.user import User
from services.config_store import Capability, ConfigStore, require_developer
from services.credits_store import Action, ActionType, CreditsStore, StoreRegistry
from services.errors import UserNotFoundError
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class CreditsService:
    """
    Ledger operations for users and creators.

    Args:
        ledger_repo: LedgerRepository
        subscription_repo: SubscriptionRepository (current plan on reload)
        config_store: ConfigStore for capabilities and payout settings
        stores: shared StoreRegistry
        reward_amount: credits granted by add_reward
    """

    def __init__(self, ledger_repo, subscription_repo, config_store: ConfigStore,
                 stores: StoreRegistry, reward_amount: int = 100):
        self.ledger_repo = ledger_repo
        self.subscription_repo = subscription_repo
        self.config_store = config_store
        self.stores = stores
        self.reward_amount = reward_amount

    # =========================================================================
    # STORE LIFECYCLE
    # =========================================================================

    async def load(self, user_id: str) -> CreditsStore:
        """Full reload of a user's store from the database"""
        balance = await self.ledger_repo.get_balance(user_id)
        if balance is None:
            raise UserNotFoundError(user_id)

        transactions = await self.ledger_repo.list_transactions(user_id)
        unlocked_ids = await self.ledger_repo.list_unlocked_ids(user_id)
        earned, first_accrual_at = await self.ledger_repo.get_creator_earnings(user_id)
        creator_transactions = await self.ledger_repo.list_creator_transactions(user_id)
        subscription = await self.subscription_repo.get_for_user(user_id)

        store = self.stores.get_or_create(user_id)
        store.dispatch(Action(ActionType.LOADED, {
            "balance": balance,
            "transactions": transactions,
            "unlocked_ids": unlocked_ids,
            "earned": earned,
            "first_accrual_at": first_accrual_at,
            "creator_transactions": creator_transactions,
            "subscription": subscription,
        }))
        return store

    async def store_for(self, user_id: str) -> CreditsStore:
        """Loaded store for a user, loading it on first use"""
        store = self.stores.get(user_id)
        if store is None or not store.loaded:
            store = await self.load(user_id)
        return store

    def _apply(self, user_id: str, action: Action):
        # Users without a live store pick the change up on their next load
        store = self.stores.get(user_id)
        if store is not None and store.loaded:
            store.dispatch(action)

    # =========================================================================
    # CREDITS
    # =========================================================================

    async def add_reward(self, user: User) -> Transaction:
        """Grant the fixed reward amount"""
        await self.config_store.require_capability(user, Capability.EARN_CREDITS)
        transaction = await self.ledger_repo.add_credits(
            user.user_id,
            self.reward_amount,
            TransactionType.REWARD,
            "Reward credits",
        )
        self._apply(user.user_id, Action(ActionType.CREDITS_ADDED, {"transaction": transaction}))
        return transaction

    async def grant_credits(self, actor: User, user_id: str, amount: int,
                            description: Optional[str] = None) -> Transaction:
        """Admin grant, recorded as a credit purchase"""
        require_developer(actor)
        if amount <= 0:
            raise ValueError("Amount must be positive")
        transaction = await self.ledger_repo.add_credits(
            user_id,
            amount,
            TransactionType.CREDIT_PURCHASE,
            description or "Credits granted by admin",
            reference_id=actor.user_id,
        )
        if transaction is None:
            raise UserNotFoundError(user_id)
        self._apply(user_id, Action(ActionType.CREDITS_ADDED, {"transaction": transaction}))
        return transaction

    async def credit_from_payment(self, event_id: str, event_type: str, user_id: str,
                                  amount: int, description: str) -> Optional[Transaction]:
        """
        Credit a verified gateway payment.

        Returns:
            The transaction, or None if this event was already processed
        """
        transaction = await self.ledger_repo.add_credits_for_payment(
            event_id, event_type, user_id, amount, description
        )
        if transaction is None:
            logger.info(f"Payment event {event_id} already processed")
            return None
        self._apply(user_id, Action(ActionType.CREDITS_ADDED, {"transaction": transaction}))
        return transaction

    def apply_subscription_change(self, user_id: str, subscription, transaction: Optional[Transaction]):
        self._apply(user_id, Action(ActionType.SUBSCRIPTION_CHANGED, {
            "subscription": subscription,
            "transaction": transaction,
        }))

    # =========================================================================
    # PAYOUTS
    # =========================================================================

    async def payouts(self, user: User) -> dict:
        """
        Creator payout view: earned balance, its currency value and the
        withdrawal cooldown. Withdrawals themselves are not executed here.
        """
        await self.config_store.require_capability(user, Capability.CREATOR_PAYOUTS)
        settings = await self.config_store.get_dev_settings()
        store = await self.load(user.user_id)

        earned = store.earned_balance
        available_at = store.earnings.withdrawal_available_at(
            user.user_id, settings.withdrawal_cooldown_hours
        )
        return {
            "earned_credits": earned,
            "estimated_value_usd": round(earned * settings.credit_value_usd, 2),
            "withdrawal_available_at": available_at,
            "can_withdraw": available_at is not None and utc_now() >= available_at,
            "transactions": store.earnings.records(user.user_id),
        }
