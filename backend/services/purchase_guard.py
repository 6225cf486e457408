"""
In-flight purchase guard

At most one purchase of a given item runs at a time per buyer. A second
attempt waits for the first to finish and then runs against the reloaded
state, so a concurrent duplicate ends as AlreadyUnlockedError instead of a
second charge. PurchaseInFlightError is only raised when the wait exceeds
the guard's timeout.

LocalInFlightGuard covers a single process. RedisInFlightGuard uses
SET NX PX so several API workers share the same guard. Either way the
unlocked_content primary key in PostgreSQL is the final arbiter.
"""
import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Tuple

from services.errors import PurchaseInFlightError

logger = logging.getLogger(__name__)


class LocalInFlightGuard:
    """Process-local lock per (buyer, item) key"""

    def __init__(self, wait_timeout: float = 30.0):
        self.wait_timeout = wait_timeout
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._users: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, buyer_id: str, content_id: str):
        key = (buyer_id, content_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_timeout)
            except asyncio.TimeoutError:
                raise PurchaseInFlightError(content_id)
            try:
                yield
            finally:
                lock.release()
        finally:
            # Last user out drops the lock
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


# Delete the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisInFlightGuard:
    """
    Cross-process guard backed by a Redis key with a TTL.

    Waiters poll SET NX until the holder releases the key or it expires;
    they give up after one TTL.
    """

    def __init__(self, redis_client, ttl_ms: int = 30000, prefix: str = "funfans:purchase",
                 poll_interval: float = 0.05):
        self.redis = redis_client
        self.ttl_ms = ttl_ms
        self.prefix = prefix
        self.poll_interval = poll_interval

    def _key(self, buyer_id: str, content_id: str) -> str:
        return f"{self.prefix}:{buyer_id}:{content_id}"

    async def _acquire(self, key: str, token: str, content_id: str):
        deadline = time.monotonic() + self.ttl_ms / 1000
        while not await self.redis.set(key, token, nx=True, px=self.ttl_ms):
            if time.monotonic() >= deadline:
                raise PurchaseInFlightError(content_id)
            await asyncio.sleep(self.poll_interval)

    @asynccontextmanager
    async def hold(self, buyer_id: str, content_id: str):
        key = self._key(buyer_id, content_id)
        token = uuid.uuid4().hex
        await self._acquire(key, token, content_id)
        try:
            yield
        finally:
            try:
                await self.redis.eval(_RELEASE_SCRIPT, 1, key, token)
            except Exception as e:
                # The TTL releases the key eventually
                logger.warning(f"Failed to release purchase guard {key}: {e}")
