"""
Simple in-memory cache for admin settings snapshots
"""

import time
from typing import Dict, Any, Optional
from threading import Lock

from config import get_settings


class SimpleCache:
    """Thread-safe in-memory cache with TTL"""

    def __init__(self, default_ttl: int = 30):
        self.cache: Dict[str, tuple[Any, float]] = {}
        self.lock = Lock()
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired"""
        with self.lock:
            if key in self.cache:
                value, expiry = self.cache[key]
                if time.time() < expiry:
                    return value
                del self.cache[key]
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        """Set value in cache with TTL (seconds)"""
        ttl = self.default_ttl if ttl is None else ttl
        expiry = time.time() + ttl
        with self.lock:
            self.cache[key] = (value, expiry)

    def delete(self, key: str):
        with self.lock:
            self.cache.pop(key, None)

    def clear(self):
        with self.lock:
            self.cache.clear()


# Dev settings and sidebar flags; overwritten on every admin write
settings_cache = SimpleCache(default_ttl=get_settings().settings_cache_ttl)
