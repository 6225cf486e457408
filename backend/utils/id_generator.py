"""
Short prefixed ID generator for FunFans records.

Format: {prefix}_{base36_random}
- ci_xxxxxxxx  - content item
- tx_xxxxxxxx  - credit transaction
- ct_xxxxxxxx  - creator transaction

8 chars base36 = 36^8 = 2.8 trillion unique IDs per type
Total length: 11 chars (2 prefix + underscore + 8 random)

Users keep UUIDs; plans and credit packages keep their catalog ids.
"""
import secrets
import re

# Base36 alphabet (lowercase letters + digits)
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
BASE = len(ALPHABET)  # 36

# Valid prefixes
PREFIXES = {
    'content_item': 'ci',
    'transaction': 'tx',
    'creator_transaction': 'ct',
}

ID_PATTERN = re.compile(r'^(ci|tx|ct)_[0-9a-z]{8}$')


def _random_base36(length: int = 8) -> str:
    """Generate random base36 string"""
    return ''.join(ALPHABET[secrets.randbelow(BASE)] for _ in range(length))


def generate_id(entity_type: str) -> str:
    """
    Generate a new short ID for the given record type.

    Args:
        entity_type: One of 'content_item', 'transaction', 'creator_transaction'

    Returns:
        Short ID like 'ci_x5b8r2yj'

    Raises:
        ValueError: If entity_type is invalid
    """
    if entity_type not in PREFIXES:
        raise ValueError(f"Invalid entity type: {entity_type}. "
                         f"Must be one of: {list(PREFIXES.keys())}")

    return f"{PREFIXES[entity_type]}_{_random_base36(8)}"


def validate_id(id_str: str) -> bool:
    """Check if a string is a valid short ID."""
    if not id_str or not isinstance(id_str, str):
        return False
    return bool(ID_PATTERN.match(id_str))


def generate_content_item_id() -> str:
    """Generate a new content item ID"""
    return generate_id('content_item')


def generate_transaction_id() -> str:
    """Generate a new credit transaction ID"""
    return generate_id('transaction')


def generate_creator_transaction_id() -> str:
    """Generate a new creator transaction ID"""
    return generate_id('creator_transaction')
