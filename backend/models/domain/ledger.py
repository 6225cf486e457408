"""
Ledger domain models

Storage: PostgreSQL (credit_transactions, creator_transactions,
creator_earnings, unlocked_content tables)

Transactions are append-only: records are frozen and never updated or deleted.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from models.domain.content import MediaCount
from utils.datetime_utils import utc_now
from utils.id_generator import (
    generate_transaction_id,
    generate_creator_transaction_id,
)


class TransactionType(str, Enum):
    """Kinds of balance change"""
    PURCHASE = "purchase"
    REWARD = "reward"
    SUBSCRIPTION = "subscription"
    REFUND = "refund"
    CREDIT_PURCHASE = "credit_purchase"


@dataclass(frozen=True)
class Transaction:
    """
    Immutable record of a balance change, from the account holder's view.

    amount is signed: positive = credit, negative = debit.
    """
    user_id: str
    type: TransactionType
    amount: int
    description: str
    balance_after: Optional[int] = None
    reference_id: Optional[str] = None
    id: str = field(default_factory=generate_transaction_id)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "description": self.description,
            "reference_id": self.reference_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CreatorTransaction:
    """
    Immutable record of a sale from the seller's view.

    amount_received keeps the commission rate in force at purchase time;
    later commission changes never rewrite it.
    """
    creator_id: str
    card_id: str
    card_title: str
    buyer_id: str
    amount_received: float
    original_price: int
    commission_rate: float
    media_count: MediaCount = field(default_factory=MediaCount)
    id: str = field(default_factory=generate_creator_transaction_id)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "card_id": self.card_id,
            "card_title": self.card_title,
            "buyer_id": self.buyer_id,
            "amount_received": self.amount_received,
            "original_price": self.original_price,
            "commission_rate": self.commission_rate,
            "media_count": self.media_count.to_dict(),
            "created_at": self.created_at.isoformat(),
        }


def creator_earnings(price: int, commission: float) -> float:
    """Creator's share of a sale: price * (1 - commission)"""
    if not 0 <= commission <= 1:
        raise ValueError(f"Commission must be within [0, 1], got {commission}")
    return price * (1 - commission)


@dataclass(frozen=True)
class PurchaseReceipt:
    """
    Outcome of a committed purchase.

    Returned by the atomic purchase operation and applied to the
    buyer's (and creator's) in-process stores.
    """
    buyer_id: str
    content_id: str
    creator_id: str
    price: int
    earnings: float
    new_balance: int
    transaction: Transaction
    creator_transaction: CreatorTransaction
