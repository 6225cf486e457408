"""
Datetime helpers

All timestamps handled by the service are timezone-aware UTC.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value) -> Optional[datetime]:
    """
    Normalize a timestamp to an aware UTC datetime.

    Handles:
    - None -> None
    - naive datetime -> assumed UTC
    - aware datetime -> converted to UTC
    - ISO string (with or without trailing Z) -> parsed
    - epoch milliseconds (int/float) -> converted

    Args:
        value: datetime, string, epoch milliseconds or None

    Returns:
        Aware UTC datetime or None
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError as e:
            logger.warning(f"Failed to parse datetime string '{value}': {e}")
            return None

    logger.warning(f"Cannot convert {type(value)} to datetime: {value}")
    return None


def add_months(value: datetime, months: int = 1) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month.

    Jan 31 + 1 month -> Feb 28 (or 29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    # Day 28 exists in every month; walk forward until the target day or month end
    day = min(value.day, 28)
    candidate = value.replace(year=year, month=month, day=day)
    while candidate.day < value.day:
        nxt = candidate + timedelta(days=1)
        if nxt.month != month:
            break
        candidate = nxt
    return candidate
