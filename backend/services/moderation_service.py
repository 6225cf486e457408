"""
Moderation Service - user timeouts and showcase curation
"""
import logging
from typing import List, Optional

from models.domain.platform import UserTimeout
from models.domain.user import User
from services.config_store import require_developer
from services.errors import PermissionDeniedError, UserNotFoundError, UserTimedOutError
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class ModerationService:
    def __init__(self, moderation_repo, user_repo):
        self.moderation_repo = moderation_repo
        self.user_repo = user_repo

    async def check_access(self, user_id: str) -> None:
        """
        Raises:
            UserTimedOutError: while now < end_time of the user's timeout
        """
        timeout = await self.active_timeout(user_id)
        if timeout:
            raise UserTimedOutError(timeout.message, timeout.end_time)

    async def active_timeout(self, user_id: str) -> Optional[UserTimeout]:
        timeout = await self.moderation_repo.get_timeout(user_id)
        if timeout and timeout.is_active(utc_now()):
            return timeout
        return None

    async def set_timeout(self, actor: User, user_id: str, duration_hours: float, message: str) -> UserTimeout:
        require_developer(actor)
        if not await self.user_repo.get_by_id(user_id):
            raise UserNotFoundError(user_id)
        timeout = UserTimeout.for_hours(user_id, duration_hours, message)
        return await self.moderation_repo.set_timeout(timeout)

    async def clear_timeout(self, actor: User, user_id: str) -> bool:
        require_developer(actor)
        return await self.moderation_repo.clear_timeout(user_id)

    async def get_showcase_ids(self) -> List[str]:
        return await self.moderation_repo.get_showcase_ids()

    async def set_showcase_ids(self, actor: User, user_ids: List[str]) -> List[str]:
        require_developer(actor)
        # Drop duplicates, keep order
        unique = list(dict.fromkeys(user_ids))
        for user_id in unique:
            if not await self.user_repo.get_by_id(user_id):
                raise UserNotFoundError(user_id)
        return await self.moderation_repo.set_showcase_ids(unique)
