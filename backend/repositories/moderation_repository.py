"""
Moderation Repository - user timeouts and the showcase list

Storage: PostgreSQL (user_timeouts, showcased_users tables)
"""
import logging
from typing import List, Optional
import asyncpg

from models.domain.platform import UserTimeout

logger = logging.getLogger(__name__)


class ModerationRepository:
    """Timeouts (one per user) and showcased creators"""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # TIMEOUTS
    # =========================================================================

    async def get_timeout(self, user_id: str) -> Optional[UserTimeout]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT user_id, end_time, message FROM user_timeouts WHERE user_id = $1
            """, user_id)

            if not row:
                return None
            return UserTimeout(user_id=str(row['user_id']), end_time=row['end_time'], message=row['message'])

    async def set_timeout(self, timeout: UserTimeout) -> UserTimeout:
        """Create or replace the user's timeout"""
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO user_timeouts (user_id, end_time, message, created_at)
                VALUES ($1, $2, $3, NOW())
                ON CONFLICT (user_id) DO UPDATE
                SET end_time = EXCLUDED.end_time, message = EXCLUDED.message
            """, timeout.user_id, timeout.end_time, timeout.message)

            logger.info(f"Timed out user {timeout.user_id} until {timeout.end_time.isoformat()}")
            return timeout

    async def clear_timeout(self, user_id: str) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("DELETE FROM user_timeouts WHERE user_id = $1", user_id)

            cleared = int(result.split()[-1]) > 0
            if cleared:
                logger.info(f"Cleared timeout of user {user_id}")
            return cleared

    # =========================================================================
    # SHOWCASE
    # =========================================================================

    async def get_showcase_ids(self) -> List[str]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("SELECT user_id FROM showcased_users ORDER BY position ASC")
            return [str(row['user_id']) for row in rows]

    async def set_showcase_ids(self, user_ids: List[str]) -> List[str]:
        """Replace the showcase list, keeping the given order"""
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM showcased_users")
                await conn.executemany("""
                    INSERT INTO showcased_users (user_id, position) VALUES ($1, $2)
                """, [(user_id, position) for position, user_id in enumerate(user_ids)])

            logger.info(f"Showcase set to {len(user_ids)} users")
            return list(user_ids)
