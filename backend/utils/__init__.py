"""
Utility functions
"""
from .datetime_utils import utc_now, ensure_utc, add_months
from .id_generator import (
    generate_content_item_id,
    generate_transaction_id,
    generate_creator_transaction_id,
    validate_id,
)

__all__ = [
    'utc_now',
    'ensure_utc',
    'add_months',
    'generate_content_item_id',
    'generate_transaction_id',
    'generate_creator_transaction_id',
    'validate_id',
]
