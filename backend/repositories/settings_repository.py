"""
Settings Repository - admin-tunable platform settings

Storage: PostgreSQL (admin_settings table, one JSONB value per key)
"""
import json
import logging
from typing import Optional
import asyncpg

from models.domain.platform import DevSettings, SidebarVisibility

logger = logging.getLogger(__name__)

DEV_SETTINGS_KEY = "dev_settings"
SIDEBAR_KEY = "sidebar_visibility"


class SettingsRepository:
    """Key/value access to admin_settings"""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def _get(self, key: str) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            value = await conn.fetchval("SELECT value FROM admin_settings WHERE key = $1", key)
            if value is None:
                return None
            return json.loads(value) if isinstance(value, str) else value

    async def _put(self, key: str, value: dict) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO admin_settings (key, value, updated_at)
                VALUES ($1, $2::jsonb, NOW())
                ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value, updated_at = NOW()
            """, key, json.dumps(value))

            logger.info(f"Saved admin setting {key}")

    async def get_dev_settings(self) -> Optional[DevSettings]:
        data = await self._get(DEV_SETTINGS_KEY)
        if data is None:
            return None
        # Ignore keys written by older versions
        known = set(DevSettings.__dataclass_fields__)
        return DevSettings(**{k: v for k, v in data.items() if k in known})

    async def save_dev_settings(self, settings: DevSettings) -> None:
        await self._put(DEV_SETTINGS_KEY, settings.to_dict())

    async def get_sidebar_visibility(self) -> Optional[SidebarVisibility]:
        data = await self._get(SIDEBAR_KEY)
        if data is None:
            return None
        known = set(SidebarVisibility.__dataclass_fields__)
        return SidebarVisibility(**{k: bool(v) for k, v in data.items() if k in known})

    async def save_sidebar_visibility(self, visibility: SidebarVisibility) -> None:
        await self._put(SIDEBAR_KEY, visibility.to_dict())
