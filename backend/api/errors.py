"""
Domain error -> HTTP translation for the routers
"""
import logging

from fastapi import HTTPException, status

from services.errors import (
    AccountConflictError,
    AlreadyUnlockedError,
    AuthenticationError,
    CatalogItemNotFoundError,
    ContentNotDeletableError,
    ContentNotFoundError,
    CreditsError,
    InsufficientCreditsError,
    InvalidSettingError,
    MediaLimitExceededError,
    PaymentGatewayError,
    PaymentVerificationError,
    PermissionDeniedError,
    PurchaseInFlightError,
    UserNotFoundError,
    UserTimedOutError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    InsufficientCreditsError: status.HTTP_400_BAD_REQUEST,
    MediaLimitExceededError: status.HTTP_400_BAD_REQUEST,
    InvalidSettingError: status.HTTP_400_BAD_REQUEST,
    PaymentVerificationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ContentNotDeletableError: status.HTTP_403_FORBIDDEN,
    ContentNotFoundError: status.HTTP_404_NOT_FOUND,
    CatalogItemNotFoundError: status.HTTP_404_NOT_FOUND,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyUnlockedError: status.HTTP_409_CONFLICT,
    PurchaseInFlightError: status.HTTP_409_CONFLICT,
    AccountConflictError: status.HTTP_409_CONFLICT,
    UserTimedOutError: status.HTTP_423_LOCKED,
}


def timed_out_detail(error: UserTimedOutError) -> dict:
    return {
        "message": error.message,
        "end_time": error.end_time.isoformat(),
    }


def http_error(error: Exception) -> HTTPException:
    """
    Map a domain error (or a domain ValueError) to an HTTPException.

    Unknown exceptions become 500 and are logged.
    """
    if isinstance(error, UserTimedOutError):
        return HTTPException(status_code=status.HTTP_423_LOCKED, detail=timed_out_detail(error))

    if isinstance(error, PaymentGatewayError):
        return HTTPException(
            status_code=error.status_code or status.HTTP_502_BAD_GATEWAY,
            detail=str(error),
        )

    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))

    if isinstance(error, CreditsError) or isinstance(error, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    logger.error(f"Unhandled error: {error}", exc_info=error)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
