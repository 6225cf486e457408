"""
Pydantic models for credits, purchases and payouts
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from models.domain.ledger import PurchaseReceipt, TransactionType


class TransactionResponse(BaseModel):
    id: str
    type: TransactionType
    amount: int
    description: str
    balance_after: Optional[int] = None
    reference_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MediaCountResponse(BaseModel):
    images: int = 0
    videos: int = 0

    model_config = {"from_attributes": True}


class CreatorTransactionResponse(BaseModel):
    id: str
    card_id: str
    card_title: str
    buyer_id: str
    amount_received: float
    original_price: int
    commission_rate: float
    media_count: MediaCountResponse
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    balance: int
    earned_balance: float


class PurchaseResponse(BaseModel):
    """Outcome of an unlock"""
    content_id: str
    creator_id: str
    price: int
    new_balance: int
    transaction: TransactionResponse

    @classmethod
    def from_receipt(cls, receipt: PurchaseReceipt) -> 'PurchaseResponse':
        return cls(
            content_id=receipt.content_id,
            creator_id=receipt.creator_id,
            price=receipt.price,
            new_balance=receipt.new_balance,
            transaction=TransactionResponse.model_validate(receipt.transaction),
        )


class UnlocksResponse(BaseModel):
    content_ids: List[str]


class PayoutsResponse(BaseModel):
    earned_credits: float
    estimated_value_usd: float
    withdrawal_available_at: Optional[datetime] = None
    can_withdraw: bool
    transactions: List[CreatorTransactionResponse]


class GrantCreditsRequest(BaseModel):
    """Admin credit grant"""
    amount: int = Field(gt=0)
    description: Optional[str] = None
