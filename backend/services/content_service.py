"""
Content Service - paywalled media cards

Creation rules:
- title required, price > 0 (free unlocks only exist for legacy rows)
- image/video counts within the admin media caps
- tags split on commas, trimmed, lower-cased, empties removed

Creators may delete their own cards once they are older than the minimum
age; admins may hide, remove or bulk-moderate any creator's cards.
"""
import logging
from typing import List, Optional

from models.domain.content import ContentItem, MediaCount, MediaType, normalize_tags
from models.domain.user import User
from services.config_store import Capability, ConfigStore, require_developer
from services.errors import (
    ContentNotDeletableError,
    ContentNotFoundError,
    MediaLimitExceededError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


class ContentService:
    def __init__(self, content_repo, config_store: ConfigStore, moderation_repo=None,
                 min_age_hours: int = 24):
        self.content_repo = content_repo
        self.config_store = config_store
        self.moderation_repo = moderation_repo
        self.min_age_hours = min_age_hours

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(self, creator: User, title: str, price: int, image_url: str = "",
                     offer_text: Optional[str] = None, media_type: str = MediaType.IMAGE.value,
                     images: int = 0, videos: int = 0, blur_level: int = 5,
                     external_link: Optional[str] = None, tags=None) -> ContentItem:
        """
        Raises:
            PermissionDeniedError: content creation disabled for this user
            MediaLimitExceededError: more media than the caps allow
            ValueError: empty title or non-positive price
        """
        await self.config_store.require_capability(creator, Capability.CREATE_CONTENT)

        if price <= 0:
            raise ValueError("Price must be greater than zero")

        settings = await self.config_store.get_dev_settings()
        if images > settings.max_images_per_card:
            raise MediaLimitExceededError(
                f"At most {settings.max_images_per_card} images per card"
            )
        if videos > settings.max_videos_per_card:
            raise MediaLimitExceededError(
                f"At most {settings.max_videos_per_card} videos per card"
            )

        item = ContentItem(
            id="",  # Will be generated in __post_init__
            creator_id=creator.user_id,
            title=title.strip() if title else "",
            price=price,
            image_url=image_url,
            offer_text=offer_text,
            media_type=media_type,
            media_count=MediaCount(images=images, videos=videos),
            blur_level=blur_level,
            external_link=external_link,
            tags=normalize_tags(tags),
        )
        return await self.content_repo.create(item)

    # =========================================================================
    # READ
    # =========================================================================

    async def get(self, item_id: str, viewer: Optional[User] = None) -> ContentItem:
        item = await self.content_repo.get_by_id(item_id)
        is_admin = bool(viewer and viewer.is_developer)
        if item is None or not item.is_visible_to(is_admin):
            raise ContentNotFoundError(item_id)
        return item

    async def list_items(self, viewer: Optional[User] = None, tag: Optional[str] = None,
                         creator_id: Optional[str] = None, limit: int = 50,
                         offset: int = 0) -> List[ContentItem]:
        """Hidden items only appear for admins; one page, newest first"""
        is_admin = bool(viewer and viewer.is_developer)
        return await self.content_repo.list_items(
            include_hidden=is_admin,
            tag=tag,
            creator_ids=[creator_id] if creator_id else None,
            limit=limit,
            offset=offset,
        )

    async def showcase(self, viewer: Optional[User] = None) -> List[ContentItem]:
        """Items from the admin-curated showcase creators"""
        creator_ids = await self.moderation_repo.get_showcase_ids()
        if not creator_ids:
            return []
        is_admin = bool(viewer and viewer.is_developer)
        return await self.content_repo.list_items(include_hidden=is_admin, creator_ids=creator_ids)

    # =========================================================================
    # DELETE / MODERATION
    # =========================================================================

    async def delete(self, actor: User, item_id: str) -> None:
        item = await self.content_repo.get_by_id(item_id)
        if item is None:
            raise ContentNotFoundError(item_id)

        if not actor.is_developer:
            if item.creator_id != actor.user_id:
                raise PermissionDeniedError("Only the creator can delete this card")
            if not item.can_be_deleted(self.min_age_hours):
                raise ContentNotDeletableError(
                    f"Cards can only be deleted {self.min_age_hours} hours after creation"
                )

        await self.content_repo.delete(item_id)

    async def toggle_hidden(self, actor: User, item_id: str) -> ContentItem:
        require_developer(actor)
        item = await self.content_repo.get_by_id(item_id)
        if item is None:
            raise ContentNotFoundError(item_id)
        item.is_hidden = not item.is_hidden
        await self.content_repo.set_hidden(item_id, item.is_hidden)
        return item

    async def hide_all_from_creator(self, actor: User, creator_id: str) -> int:
        require_developer(actor)
        return await self.content_repo.hide_all_by_creator(creator_id)

    async def delete_all_from_creator(self, actor: User, creator_id: str) -> int:
        require_developer(actor)
        return await self.content_repo.delete_all_by_creator(creator_id)

    # =========================================================================
    # ENGAGEMENT
    # =========================================================================

    async def toggle_like(self, user: User, item_id: str) -> ContentItem:
        item = await self.get(item_id, user)
        liked = item.toggle_like(user.user_id)
        await self.content_repo.set_like(item_id, user.user_id, liked)
        return item

    async def react(self, user: User, item_id: str, emoji: str) -> ContentItem:
        if not emoji:
            raise ValueError("Emoji required")
        item = await self.get(item_id, user)
        current = item.react(user.user_id, emoji)
        await self.content_repo.set_reaction(item_id, user.user_id, current)
        return item

    async def share(self, user: User, item_id: str) -> ContentItem:
        item = await self.get(item_id, user)
        if item.share(user.user_id):
            await self.content_repo.add_share(item_id, user.user_id)
        return item
