"""
Ledger Repository - PostgreSQL storage for balances and append-only ledgers

Storage: PostgreSQL (users.credits_balance, credit_transactions,
creator_transactions, creator_earnings, unlocked_content, payment_events)

Transactions are only ever inserted. Balance changes and their transaction
row are written in the same database transaction.
"""
import logging
from datetime import datetime
from typing import List, Optional, Set, Tuple
import asyncpg

from models.domain.content import MediaCount
from models.domain.ledger import CreatorTransaction, Transaction, TransactionType
from services.errors import UserNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# ROW HELPERS (shared with purchase/subscription repositories)
# =============================================================================

def row_to_transaction(row) -> Transaction:
    return Transaction(
        id=row['id'],
        user_id=str(row['user_id']),
        type=TransactionType(row['type']),
        amount=row['amount'],
        balance_after=row['balance_after'],
        description=row['description'],
        reference_id=row['reference_id'],
        created_at=row['created_at'],
    )


def row_to_creator_transaction(row) -> CreatorTransaction:
    return CreatorTransaction(
        id=row['id'],
        creator_id=str(row['creator_id']),
        card_id=row['card_id'],
        card_title=row['card_title'],
        buyer_id=str(row['buyer_id']),
        amount_received=row['amount_received'],
        original_price=row['original_price'],
        commission_rate=row['commission_rate'],
        media_count=MediaCount(images=row['image_count'], videos=row['video_count']),
        created_at=row['created_at'],
    )


async def insert_transaction(conn, transaction: Transaction) -> None:
    await conn.execute("""
        INSERT INTO credit_transactions (
            id, user_id, type, amount, balance_after, description, reference_id, created_at
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    """,
        transaction.id,
        transaction.user_id,
        transaction.type.value,
        transaction.amount,
        transaction.balance_after,
        transaction.description,
        transaction.reference_id,
        transaction.created_at
    )


async def insert_creator_transaction(conn, record: CreatorTransaction) -> None:
    await conn.execute("""
        INSERT INTO creator_transactions (
            id, creator_id, card_id, card_title, buyer_id, amount_received,
            original_price, commission_rate, image_count, video_count, created_at
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
    """,
        record.id,
        record.creator_id,
        record.card_id,
        record.card_title,
        record.buyer_id,
        record.amount_received,
        record.original_price,
        record.commission_rate,
        record.media_count.images,
        record.media_count.videos,
        record.created_at
    )


async def credit_balance(conn, user_id: str, amount: int, type: TransactionType,
                         description: str, reference_id: Optional[str] = None) -> Optional[Transaction]:
    """
    Add credits inside an open transaction.

    Returns:
        The recorded Transaction, or None if the user does not exist
    """
    new_balance = await conn.fetchval("""
        UPDATE users
        SET credits_balance = credits_balance + $2
        WHERE user_id = $1
        RETURNING credits_balance
    """, user_id, amount)

    if new_balance is None:
        return None

    transaction = Transaction(
        user_id=user_id,
        type=type,
        amount=amount,
        description=description,
        balance_after=new_balance,
        reference_id=reference_id,
    )
    await insert_transaction(conn, transaction)
    return transaction


async def claim_payment_event(conn, event_id: str, event_type: str, user_id: Optional[str]) -> bool:
    """
    Mark a gateway event as processed inside an open transaction.

    Returns:
        False if the event was processed before
    """
    result = await conn.execute("""
        INSERT INTO payment_events (event_id, event_type, user_id, processed_at)
        VALUES ($1, $2, $3, NOW())
        ON CONFLICT (event_id) DO NOTHING
    """, event_id, event_type, user_id)
    return int(result.split()[-1]) > 0


class LedgerRepository:
    """
    Repository for balances, transactions, unlocks and creator earnings
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_balance(self, user_id: str) -> Optional[int]:
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT credits_balance FROM users WHERE user_id = $1
            """, user_id)

    async def list_transactions(self, user_id: str, limit: int = 200) -> List[Transaction]:
        """
        Get user's credit transaction history, newest first.

        Args:
            user_id: User UUID
            limit: Maximum rows

        Returns:
            List of Transaction (amount positive=credit, negative=debit)
        """
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, user_id, type, amount, balance_after, description,
                       reference_id, created_at
                FROM credit_transactions
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
            """, user_id, limit)

            return [row_to_transaction(row) for row in rows]

    async def list_unlocked_ids(self, user_id: str) -> Set[str]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT content_item_id FROM unlocked_content WHERE user_id = $1
            """, user_id)

            return {row['content_item_id'] for row in rows}

    async def get_creator_earnings(self, creator_id: str) -> Tuple[float, Optional[datetime]]:
        """
        Returns:
            (earned credits, time of first accrual or None)
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT earned, first_accrual_at
                FROM creator_earnings
                WHERE creator_id = $1
            """, creator_id)

            if not row:
                return 0.0, None
            return float(row['earned']), row['first_accrual_at']

    async def list_creator_transactions(self, creator_id: str, limit: int = 200) -> List[CreatorTransaction]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, creator_id, card_id, card_title, buyer_id, amount_received,
                       original_price, commission_rate, image_count, video_count, created_at
                FROM creator_transactions
                WHERE creator_id = $1
                ORDER BY created_at DESC
                LIMIT $2
            """, creator_id, limit)

            return [row_to_creator_transaction(row) for row in rows]

    # =========================================================================
    # CREDIT OPERATIONS
    # =========================================================================

    async def add_credits(self, user_id: str, amount: int, type: TransactionType,
                          description: str, reference_id: Optional[str] = None) -> Optional[Transaction]:
        """
        Atomically increase a balance and record the transaction.

        Returns:
            Transaction, or None if the user does not exist
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive, got {amount}")

        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                transaction = await credit_balance(conn, user_id, amount, type, description, reference_id)

            if transaction:
                logger.info(f"Credited {amount} ({type.value}) to user {user_id}, balance {transaction.balance_after}")
            return transaction

    async def add_credits_for_payment(self, event_id: str, event_type: str, user_id: str,
                                      amount: int, description: str) -> Optional[Transaction]:
        """
        Credit a verified payment once per gateway event.

        Returns:
            Transaction, or None if the event was already processed

        Raises:
            UserNotFoundError: the paying user does not exist (event not marked)
        """
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                if not await claim_payment_event(conn, event_id, event_type, user_id):
                    return None

                transaction = await credit_balance(
                    conn, user_id, amount, TransactionType.CREDIT_PURCHASE, description, event_id
                )
                if transaction is None:
                    raise UserNotFoundError(user_id)

            logger.info(f"Credited {amount} to user {user_id} for payment event {event_id}")
            return transaction
