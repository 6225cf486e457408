"""
Purchase Repository - the atomic content purchase

Storage: PostgreSQL (users, credit_transactions, creator_earnings,
creator_transactions, unlocked_content)

One database transaction covers the whole purchase:
1. Reject if the (buyer, item) unlock already exists
2. Conditional debit (WHERE credits_balance >= price)
3. Buyer's PURCHASE transaction
4. Creator earnings upsert + CreatorTransaction
5. Unlock row (primary key (user_id, content_item_id))

Any failure rolls everything back, so a buyer is never charged without the
unlock and never unlocks without paying.
"""
import logging
import asyncpg

from models.domain.content import ContentItem
from models.domain.ledger import (
    CreatorTransaction,
    PurchaseReceipt,
    Transaction,
    TransactionType,
    creator_earnings,
)
from repositories.ledger_repository import insert_creator_transaction, insert_transaction
from services.errors import AlreadyUnlockedError, InsufficientCreditsError, UserNotFoundError

logger = logging.getLogger(__name__)


class PurchaseRepository:
    """Atomic purchase of a content item"""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def purchase_content(self, buyer_id: str, item: ContentItem, commission: float) -> PurchaseReceipt:
        """
        Debit the buyer, credit the creator and grant the unlock.

        Args:
            buyer_id: Buyer UUID
            item: Content item being bought (price read from here)
            commission: Platform commission read by the caller at call time

        Returns:
            PurchaseReceipt with the committed balance

        Raises:
            AlreadyUnlockedError: unlock exists (nothing charged)
            InsufficientCreditsError: balance below price (nothing charged)
            UserNotFoundError: buyer does not exist
        """
        price = item.price
        earnings = creator_earnings(price, commission)

        async with self.db_pool.acquire() as conn:
            try:
                async with conn.transaction():
                    already = await conn.fetchval("""
                        SELECT 1 FROM unlocked_content
                        WHERE user_id = $1 AND content_item_id = $2
                    """, buyer_id, item.id)
                    if already:
                        raise AlreadyUnlockedError(item.id)

                    # 1. Atomically deduct credits
                    new_balance = await conn.fetchval("""
                        UPDATE users
                        SET credits_balance = credits_balance - $2
                        WHERE user_id = $1 AND credits_balance >= $2
                        RETURNING credits_balance
                    """, buyer_id, price)

                    if new_balance is None:
                        balance = await conn.fetchval(
                            "SELECT credits_balance FROM users WHERE user_id = $1", buyer_id
                        )
                        if balance is None:
                            raise UserNotFoundError(buyer_id)
                        raise InsufficientCreditsError(balance, price)

                    # 2. Buyer's ledger entry
                    transaction = Transaction(
                        user_id=buyer_id,
                        type=TransactionType.PURCHASE,
                        amount=-price,
                        description=f"Unlocked: {item.title}",
                        balance_after=new_balance,
                        reference_id=item.id,
                    )
                    await insert_transaction(conn, transaction)

                    # 3. Creator earnings
                    record = CreatorTransaction(
                        creator_id=item.creator_id,
                        card_id=item.id,
                        card_title=item.title,
                        buyer_id=buyer_id,
                        amount_received=earnings,
                        original_price=price,
                        commission_rate=commission,
                        media_count=item.media_count,
                    )
                    await conn.execute("""
                        INSERT INTO creator_earnings (creator_id, earned, first_accrual_at, updated_at)
                        VALUES ($1, $2, NOW(), NOW())
                        ON CONFLICT (creator_id) DO UPDATE
                        SET earned = creator_earnings.earned + EXCLUDED.earned,
                            updated_at = NOW()
                    """, item.creator_id, earnings)
                    await insert_creator_transaction(conn, record)

                    # 4. Unlock (the primary key settles concurrent duplicates)
                    await conn.execute("""
                        INSERT INTO unlocked_content (user_id, content_item_id, transaction_id, unlocked_at)
                        VALUES ($1, $2, $3, NOW())
                    """, buyer_id, item.id, transaction.id)

            except asyncpg.UniqueViolationError:
                raise AlreadyUnlockedError(item.id)

            logger.info(
                f"User {buyer_id} unlocked {item.id} for {price} credits "
                f"(creator {item.creator_id} +{earnings}, balance {new_balance})"
            )
            return PurchaseReceipt(
                buyer_id=buyer_id,
                content_id=item.id,
                creator_id=item.creator_id,
                price=price,
                earnings=earnings,
                new_balance=new_balance,
                transaction=transaction,
                creator_transaction=record,
            )
