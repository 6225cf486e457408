"""
FastAPI dependency providers

Repositories are built per request over the shared asyncpg pool. The
per-user credits stores, the in-flight purchase guard and the payment
gateway are process-wide singletons. Tests override the repository
providers with in-memory fakes.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status

from config import get_settings, create_redis_client
from middleware.auth import UserPublic, get_current_user, get_current_user_optional
from models.domain.platform import DevSettings
from models.domain.user import User
from repositories import (
    get_db_pool,
    UserRepository,
    ContentRepository,
    LedgerRepository,
    PurchaseRepository,
    SubscriptionRepository,
    SettingsRepository,
    ModerationRepository,
)
from services.account_service import AccountService
from services.config_store import ConfigStore
from services.content_service import ContentService
from services.credits_service import CreditsService
from services.credits_store import StoreRegistry
from services.errors import UserTimedOutError
from services.moderation_service import ModerationService
from services.payments import StripeGateway
from services.purchase_guard import LocalInFlightGuard, RedisInFlightGuard
from services.purchase_orchestrator import PurchaseOrchestrator
from services.social_service import SocialService
from services.store_service import StoreService
from api.errors import timed_out_detail

logger = logging.getLogger(__name__)
settings = get_settings()

_stores = StoreRegistry(
    max_stores=settings.credits_store_max_users,
    history_limit=settings.credits_store_history,
)
_guard = None


# =============================================================================
# SINGLETONS
# =============================================================================

def get_store_registry() -> StoreRegistry:
    return _stores


async def get_purchase_guard():
    """Redis-backed guard when REDIS_URL is set, process-local otherwise"""
    global _guard
    if _guard is None:
        redis_client = await create_redis_client()
        if redis_client is not None:
            _guard = RedisInFlightGuard(redis_client, ttl_ms=settings.purchase_lock_ttl_ms)
            logger.info("Purchase guard: redis")
        else:
            _guard = LocalInFlightGuard(wait_timeout=settings.purchase_lock_ttl_ms / 1000)
            logger.info("Purchase guard: in-process")
    return _guard


def get_payment_gateway() -> StripeGateway:
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
    )


def default_dev_settings() -> DevSettings:
    return DevSettings(
        platform_commission=settings.default_platform_commission,
        credit_value_usd=settings.default_credit_value_usd,
        withdrawal_cooldown_hours=settings.default_withdrawal_cooldown_hours,
        max_images_per_card=settings.default_max_images_per_card,
        max_videos_per_card=settings.default_max_videos_per_card,
    )


# =============================================================================
# REPOSITORIES
# =============================================================================

async def get_user_repository() -> UserRepository:
    return UserRepository(await get_db_pool())


async def get_content_repository() -> ContentRepository:
    return ContentRepository(await get_db_pool())


async def get_ledger_repository() -> LedgerRepository:
    return LedgerRepository(await get_db_pool())


async def get_purchase_repository() -> PurchaseRepository:
    return PurchaseRepository(await get_db_pool())


async def get_subscription_repository() -> SubscriptionRepository:
    return SubscriptionRepository(await get_db_pool())


async def get_settings_repository() -> SettingsRepository:
    return SettingsRepository(await get_db_pool())


async def get_moderation_repository() -> ModerationRepository:
    return ModerationRepository(await get_db_pool())


# =============================================================================
# SERVICES
# =============================================================================

def get_config_store(settings_repo=Depends(get_settings_repository)) -> ConfigStore:
    return ConfigStore(settings_repo, defaults=default_dev_settings())


def get_account_service(user_repo=Depends(get_user_repository)) -> AccountService:
    return AccountService(user_repo, initial_balance=settings.initial_balance)


def get_moderation_service(
    moderation_repo=Depends(get_moderation_repository),
    user_repo=Depends(get_user_repository),
) -> ModerationService:
    return ModerationService(moderation_repo, user_repo)


def get_credits_service(
    ledger_repo=Depends(get_ledger_repository),
    subscription_repo=Depends(get_subscription_repository),
    config_store: ConfigStore = Depends(get_config_store),
    stores: StoreRegistry = Depends(get_store_registry),
) -> CreditsService:
    return CreditsService(
        ledger_repo, subscription_repo, config_store, stores,
        reward_amount=settings.reward_amount,
    )


def get_purchase_orchestrator(
    purchase_repo=Depends(get_purchase_repository),
    content_repo=Depends(get_content_repository),
    config_store: ConfigStore = Depends(get_config_store),
    credits: CreditsService = Depends(get_credits_service),
    guard=Depends(get_purchase_guard),
) -> PurchaseOrchestrator:
    return PurchaseOrchestrator(purchase_repo, content_repo, config_store, credits, guard=guard)


def get_content_service(
    content_repo=Depends(get_content_repository),
    config_store: ConfigStore = Depends(get_config_store),
    moderation_repo=Depends(get_moderation_repository),
) -> ContentService:
    return ContentService(
        content_repo, config_store, moderation_repo,
        min_age_hours=settings.content_min_age_hours,
    )


def get_social_service(
    user_repo=Depends(get_user_repository),
    content_repo=Depends(get_content_repository),
) -> SocialService:
    return SocialService(user_repo, content_repo, public_base_url=settings.public_base_url)


def get_store_service(
    subscription_repo=Depends(get_subscription_repository),
    user_repo=Depends(get_user_repository),
    credits: CreditsService = Depends(get_credits_service),
    config_store: ConfigStore = Depends(get_config_store),
    gateway: StripeGateway = Depends(get_payment_gateway),
) -> StoreService:
    return StoreService(subscription_repo, user_repo, credits, config_store, gateway)


# =============================================================================
# CURRENT USER
# =============================================================================

async def get_account(
    current_user: UserPublic = Depends(get_current_user),
    user_repo=Depends(get_user_repository),
) -> User:
    """Full user record for the session (401 if the account is gone)"""
    user = await user_repo.get_by_id(str(current_user.user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


async def _check_access(moderation: ModerationService, user: User):
    try:
        await moderation.check_access(user.user_id)
    except UserTimedOutError as e:
        raise HTTPException(status_code=status.HTTP_423_LOCKED, detail=timed_out_detail(e))


async def get_active_user(
    user: User = Depends(get_account),
    moderation: ModerationService = Depends(get_moderation_service),
) -> User:
    """
    Signed-in user not under an active timeout.

    Raises:
        HTTPException 423 with the timeout message and end time
    """
    await _check_access(moderation, user)
    return user


async def get_viewer(
    current_user: Optional[UserPublic] = Depends(get_current_user_optional),
    user_repo=Depends(get_user_repository),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Optional[User]:
    """Optional viewer for public pages; a timed-out session still gets 423"""
    if not current_user:
        return None
    user = await user_repo.get_by_id(str(current_user.user_id))
    if user:
        await _check_access(moderation, user)
    return user


async def require_developer(user: User = Depends(get_active_user)) -> User:
    if not user.is_developer:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
