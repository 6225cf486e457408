"""
Repository Pattern - Storage abstraction layer

Repositories hide storage details (PostgreSQL) from business logic.
Consumers work with domain models, not storage-specific types.

Storage Split:
- UserRepository: users + follows
- ContentRepository: content_items + engagement tables
- LedgerRepository: balances, credit/creator transactions, unlocks, earnings
- PurchaseRepository: the atomic purchase transaction
- SubscriptionRepository: catalog + user_subscriptions
- SettingsRepository: admin_settings (dev settings, sidebar flags)
- ModerationRepository: user_timeouts, showcased_users
"""
from config.database import create_postgres_pool

# Shared database connection pool (initialized on first use)
db_pool = None


async def get_db_pool():
    """Get or create shared database connection pool"""
    global db_pool
    if db_pool is None:
        db_pool = await create_postgres_pool()
    return db_pool


async def close_db_pool():
    global db_pool
    if db_pool is not None:
        await db_pool.close()
        db_pool = None


from .user_repository import UserRepository
from .content_repository import ContentRepository
from .ledger_repository import LedgerRepository
from .purchase_repository import PurchaseRepository
from .subscription_repository import SubscriptionRepository
from .settings_repository import SettingsRepository
from .moderation_repository import ModerationRepository

__all__ = [
    'UserRepository',
    'ContentRepository',
    'LedgerRepository',
    'PurchaseRepository',
    'SubscriptionRepository',
    'SettingsRepository',
    'ModerationRepository',
    'db_pool',
    'get_db_pool',
    'close_db_pool',
]
