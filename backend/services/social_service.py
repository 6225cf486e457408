"""
Social Service - follow graph and vitrine (public creator page)
"""
import logging
from typing import List, Tuple

from models.domain.content import ContentItem
from models.domain.user import User, follow, unfollow
from services.errors import PermissionDeniedError, UserNotFoundError

logger = logging.getLogger(__name__)


class SocialService:
    def __init__(self, user_repo, content_repo, public_base_url: str = "https://funfans.com"):
        self.user_repo = user_repo
        self.content_repo = content_repo
        self.public_base_url = public_base_url.rstrip('/')

    async def _load_pair(self, follower_id: str, followee_id: str) -> Tuple[User, User]:
        follower = await self.user_repo.get_by_id(follower_id)
        if not follower:
            raise UserNotFoundError(follower_id)
        followee = await self.user_repo.get_by_id(followee_id)
        if not followee:
            raise UserNotFoundError(followee_id)
        return follower, followee

    async def follow_user(self, follower_id: str, followee_id: str) -> User:
        """
        Follow another user. Self-follows are rejected; repeats are no-ops.

        Returns:
            The follower with updated sets
        """
        if follower_id == followee_id:
            raise PermissionDeniedError("Users cannot follow themselves")
        follower, followee = await self._load_pair(follower_id, followee_id)
        if follow(follower, followee):
            await self.user_repo.add_follow(follower_id, followee_id)
        return follower

    async def unfollow_user(self, follower_id: str, followee_id: str) -> User:
        follower, followee = await self._load_pair(follower_id, followee_id)
        if unfollow(follower, followee):
            await self.user_repo.remove_follow(follower_id, followee_id)
        return follower

    def vitrine_link(self, user: User) -> str:
        return f"{self.public_base_url}/vitrine/{user.vitrine_slug}"

    async def get_vitrine(self, slug: str) -> Tuple[User, List[ContentItem]]:
        """Public page of a creator: profile plus visible cards"""
        owner = await self.user_repo.get_by_vitrine_slug(slug)
        if not owner:
            raise UserNotFoundError(slug)
        items = await self.content_repo.list_items(include_hidden=False, creator_ids=[owner.user_id])
        return owner, items
