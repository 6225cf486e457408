"""
Domain errors raised by the credits services.

Routers translate these into HTTP responses; see api/errors.py.
"""
from datetime import datetime
from typing import Optional


class CreditsError(Exception):
    """Base class for expected, user-facing failures"""


class InsufficientCreditsError(CreditsError):
    def __init__(self, balance: int, price: int):
        self.balance = balance
        self.price = price
        super().__init__(f"Insufficient credits. Need {price} credits, have {balance}.")


class AlreadyUnlockedError(CreditsError):
    def __init__(self, content_id: str):
        self.content_id = content_id
        super().__init__(f"Content {content_id} is already unlocked")


class PurchaseInFlightError(CreditsError):
    def __init__(self, content_id: str):
        self.content_id = content_id
        super().__init__(f"A purchase of {content_id} is already in progress")


class ContentNotFoundError(CreditsError):
    def __init__(self, content_id: str):
        self.content_id = content_id
        super().__init__(f"Content {content_id} not found")


class CatalogItemNotFoundError(CreditsError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Plan or package {item_id} not found")


class ContentNotDeletableError(CreditsError):
    """Creator tried to delete a card younger than the minimum age"""


class MediaLimitExceededError(CreditsError):
    """Card carries more media than the configured caps allow"""


class PermissionDeniedError(CreditsError):
    """Caller lacks the role or ownership required"""


class AuthenticationError(CreditsError):
    """Wrong email/password or unusable token"""


class AccountConflictError(CreditsError):
    """Email or vitrine slug already in use"""


class UserNotFoundError(CreditsError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class UserTimedOutError(CreditsError):
    def __init__(self, message: str, end_time: datetime):
        self.message = message
        self.end_time = end_time
        super().__init__(message)


class InvalidSettingError(CreditsError):
    """Admin setting failed validation"""


class PaymentVerificationError(CreditsError):
    """Payment gateway callback could not be verified"""


class PaymentGatewayError(CreditsError):
    """Payment gateway request failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
