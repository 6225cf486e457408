"""
Credits API Endpoints
=====================

Balance, history, unlocks and creator payouts.

Endpoints:
- GET  /api/credits/balance - Current and earned balance
- GET  /api/credits/transactions - Transaction history
- POST /api/credits/purchase/{content_id} - Unlock a card
- GET  /api/credits/unlocks - Unlocked card ids
- GET  /api/credits/unlocks/{content_id} - Is this card unlocked
- POST /api/credits/reward - Claim the reward credits
- GET  /api/credits/payouts - Creator earnings and withdrawal cooldown
"""

from fastapi import APIRouter, Depends
from typing import List
import logging

from models.api.credits import (
    BalanceResponse,
    CreatorTransactionResponse,
    PayoutsResponse,
    PurchaseResponse,
    TransactionResponse,
    UnlocksResponse,
)
from models.domain.user import User
from services.credits_service import CreditsService
from services.errors import CreditsError
from services.purchase_orchestrator import PurchaseOrchestrator
from api.dependencies import get_active_user, get_credits_service, get_purchase_orchestrator
from api.errors import http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user: User = Depends(get_active_user),
    credits: CreditsService = Depends(get_credits_service)
):
    """Balance straight from the database (full reload of the store)"""
    try:
        store = await credits.load(user.user_id)
    except CreditsError as e:
        raise http_error(e)
    return BalanceResponse(balance=store.balance, earned_balance=store.earned_balance)


@router.get("/transactions", response_model=List[TransactionResponse])
async def get_transactions(
    user: User = Depends(get_active_user),
    credits: CreditsService = Depends(get_credits_service)
):
    """Newest first"""
    try:
        store = await credits.load(user.user_id)
    except CreditsError as e:
        raise http_error(e)
    return [TransactionResponse.model_validate(t) for t in store.ledger.transactions]


@router.post("/purchase/{content_id}", response_model=PurchaseResponse)
async def purchase_content(
    content_id: str,
    user: User = Depends(get_active_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    """
    Unlock a card

    400 insufficient credits, 404 unknown card, 409 already unlocked or
    a purchase of the same card still running.
    """
    try:
        receipt = await orchestrator.purchase(user, content_id)
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return PurchaseResponse.from_receipt(receipt)


@router.get("/unlocks", response_model=UnlocksResponse)
async def get_unlocks(
    user: User = Depends(get_active_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    ids = await orchestrator.unlocked_ids(user.user_id, refresh=True)
    return UnlocksResponse(content_ids=ids)


@router.get("/unlocks/{content_id}")
async def get_unlock_status(
    content_id: str,
    user: User = Depends(get_active_user),
    orchestrator: PurchaseOrchestrator = Depends(get_purchase_orchestrator)
):
    unlocked = await orchestrator.is_unlocked(user.user_id, content_id)
    return {"content_id": content_id, "unlocked": unlocked}


@router.post("/reward", response_model=TransactionResponse)
async def claim_reward(
    user: User = Depends(get_active_user),
    credits: CreditsService = Depends(get_credits_service)
):
    try:
        transaction = await credits.add_reward(user)
    except CreditsError as e:
        raise http_error(e)
    return TransactionResponse.model_validate(transaction)


@router.get("/payouts", response_model=PayoutsResponse)
async def get_payouts(
    user: User = Depends(get_active_user),
    credits: CreditsService = Depends(get_credits_service)
):
    try:
        payouts = await credits.payouts(user)
    except CreditsError as e:
        raise http_error(e)
    return PayoutsResponse(
        earned_credits=payouts["earned_credits"],
        estimated_value_usd=payouts["estimated_value_usd"],
        withdrawal_available_at=payouts["withdrawal_available_at"],
        can_withdraw=payouts["can_withdraw"],
        transactions=[CreatorTransactionResponse.model_validate(t) for t in payouts["transactions"]],
    )
