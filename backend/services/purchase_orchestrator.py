"""
Purchase Orchestrator
=====================

Unlocks a content item for a buyer: debit the buyer, accrue the creator's
commission-adjusted earnings and grant the unlock, as one operation.

Flow:
1. Take the in-flight guard for (buyer, item); a concurrent duplicate waits
   for it and then fails with AlreadyUnlockedError after the reload.
2. Read the commission once from the settings snapshot.
3. Dispatch PURCHASE_REQUESTED into the buyer's store. The store refuses
   (without mutating anything) when the balance is short or the item is
   already unlocked.
4. Run the single database transaction (PurchaseRepository.purchase_content).
5. Dispatch PURCHASE_COMMITTED with the committed receipt, or
   PURCHASE_REJECTED and re-raise.

Price 0 is accepted: nothing is debited, earnings are 0, and the unlock
and a zero-amount transaction are still recorded.
"""
import logging
from typing import Optional

from models.domain.ledger import PurchaseReceipt
from models.domain.user import User
from services.config_store import ConfigStore
from services.credits_service import CreditsService
from services.credits_store import Action, ActionType, new_request_id
from services.errors import (
    AlreadyUnlockedError,
    ContentNotFoundError,
    CreditsError,
    InsufficientCreditsError,
    PermissionDeniedError,
)
from services.purchase_guard import LocalInFlightGuard

logger = logging.getLogger(__name__)


class PurchaseOrchestrator:
    """
    Args:
        purchase_repo: PurchaseRepository (atomic purchase_content)
        content_repo: ContentRepository
        config_store: ConfigStore (commission snapshot)
        credits: CreditsService owning the per-user stores
        guard: LocalInFlightGuard or RedisInFlightGuard
    """

    def __init__(self, purchase_repo, content_repo, config_store: ConfigStore,
                 credits: CreditsService, guard=None):
        self.purchase_repo = purchase_repo
        self.content_repo = content_repo
        self.config_store = config_store
        self.credits = credits
        self.guard = guard or LocalInFlightGuard()

    async def purchase(self, buyer: User, content_id: str) -> PurchaseReceipt:
        """
        Unlock content_id for buyer.

        Raises:
            PurchaseInFlightError: same purchase still running after the guard timeout
            ContentNotFoundError: unknown item, or hidden from this buyer
            PermissionDeniedError: buyer owns the item
            InsufficientCreditsError: balance below price (nothing changes)
            AlreadyUnlockedError: buyer already owns the unlock (no charge)
        """
        async with self.guard.hold(buyer.user_id, content_id):
            item = await self.content_repo.get_by_id(content_id)
            if item is None or not item.is_visible_to(buyer.is_developer):
                raise ContentNotFoundError(content_id)
            if item.creator_id == buyer.user_id:
                raise PermissionDeniedError("Creators cannot purchase their own content")

            settings = await self.config_store.get_dev_settings()
            commission = settings.platform_commission

            # Reconcile against the database before deciding
            store = await self.credits.load(buyer.user_id)

            request_id = new_request_id()
            try:
                store.dispatch(Action(
                    ActionType.PURCHASE_REQUESTED,
                    {"content_id": content_id, "price": item.price},
                    request_id=request_id,
                ))
            except CreditsError as e:
                logger.info(f"Purchase of {content_id} by {buyer.user_id} refused: {e}")
                raise

            try:
                receipt = await self.purchase_repo.purchase_content(buyer.user_id, item, commission)
            except (InsufficientCreditsError, AlreadyUnlockedError) as e:
                store.dispatch(Action(ActionType.PURCHASE_REJECTED, {"reason": str(e)}, request_id=request_id))
                logger.info(f"Purchase of {content_id} by {buyer.user_id} rejected by database: {e}")
                raise
            except Exception as e:
                store.dispatch(Action(ActionType.PURCHASE_REJECTED, {"reason": str(e)}, request_id=request_id))
                logger.error(f"Purchase of {content_id} by {buyer.user_id} failed: {e}")
                raise

            store.dispatch(Action(ActionType.PURCHASE_COMMITTED, {"receipt": receipt}, request_id=request_id))
            self._notify_creator(receipt)
            return receipt

    def _notify_creator(self, receipt: PurchaseReceipt):
        creator_store = self.credits.stores.get(receipt.creator_id)
        if creator_store is not None and creator_store.loaded:
            creator_store.dispatch(Action(
                ActionType.EARNINGS_ACCRUED,
                {"creator_transaction": receipt.creator_transaction},
            ))

    async def is_unlocked(self, user_id: str, content_id: str) -> bool:
        store = await self.credits.store_for(user_id)
        return store.is_unlocked(content_id)

    async def unlocked_ids(self, user_id: str, refresh: Optional[bool] = False):
        store = await (self.credits.load(user_id) if refresh else self.credits.store_for(user_id))
        return sorted(store.unlocks.ids())
