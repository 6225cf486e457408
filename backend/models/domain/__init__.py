"""
Domain Models - Storage-agnostic data structures

These models represent the core domain entities independent of storage layer.
Services operate on these models, not raw database rows.

Architecture:
- Domain models are pure Python objects (dataclasses)
- Storage details (PostgreSQL) are abstracted via repositories
- Business logic operates on these models, not database rows
"""

from .user import User, UserRole, follow, unfollow
from .content import ContentItem, MediaCount, MediaType, normalize_tags
from .ledger import (
    Transaction,
    TransactionType,
    CreatorTransaction,
    PurchaseReceipt,
    creator_earnings,
)
from .subscription import (
    Currency,
    SubscriptionPlan,
    UserSubscription,
    CreditPackage,
    ADMIN_PAYMENT_METHOD,
)
from .platform import DevSettings, SidebarVisibility, UserTimeout

__all__ = [
    # Accounts
    'User',
    'UserRole',
    'follow',
    'unfollow',

    # Content
    'ContentItem',
    'MediaCount',
    'MediaType',
    'normalize_tags',

    # Ledger
    'Transaction',
    'TransactionType',
    'CreatorTransaction',
    'PurchaseReceipt',
    'creator_earnings',

    # Store
    'Currency',
    'SubscriptionPlan',
    'UserSubscription',
    'CreditPackage',
    'ADMIN_PAYMENT_METHOD',

    # Platform
    'DevSettings',
    'SidebarVisibility',
    'UserTimeout',
]
