"""
Content item domain model
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Set

from utils.datetime_utils import utc_now, ensure_utc
from utils.id_generator import generate_content_item_id, validate_id


class MediaType(str, Enum):
    """Primary media of a card"""
    IMAGE = "image"
    VIDEO = "video"


@dataclass
class MediaCount:
    """Number of media files attached to a card"""
    images: int = 0
    videos: int = 0

    def __post_init__(self):
        if self.images < 0 or self.videos < 0:
            raise ValueError("Media counts cannot be negative")

    @property
    def total(self) -> int:
        return self.images + self.videos

    def to_dict(self) -> Dict[str, int]:
        return {"images": self.images, "videos": self.videos}


def normalize_tags(raw) -> List[str]:
    """
    Normalize tags from a comma-separated string or a list.

    Tags are trimmed and lower-cased; empty entries are dropped and
    duplicates removed while keeping first-seen order.
    """
    if raw is None:
        return []
    parts = raw.split(',') if isinstance(raw, str) else list(raw)
    tags: List[str] = []
    for part in parts:
        tag = str(part).strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


@dataclass
class ContentItem:
    """
    Content item domain model - a paywalled media card

    Storage: PostgreSQL (content_items + content_likes, content_shares,
    content_reactions tables)

    ID format: ci_xxxxxxxx (11 chars)
    """
    id: str
    creator_id: str  # UUID format
    title: str
    price: int  # credits

    image_url: str = ""
    offer_text: Optional[str] = None
    media_type: MediaType = MediaType.IMAGE
    media_count: MediaCount = field(default_factory=MediaCount)
    is_hidden: bool = False
    blur_level: int = 5
    external_link: Optional[str] = None

    # Engagement
    liked_by: Set[str] = field(default_factory=set)
    shared_by: Set[str] = field(default_factory=set)
    user_reactions: Dict[str, str] = field(default_factory=dict)

    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate and generate ID if needed"""
        if not self.id or not validate_id(self.id):
            self.id = generate_content_item_id()

        if not self.title or not self.title.strip():
            raise ValueError("Content item must have a title")

        if self.price < 0:
            raise ValueError("Content item price cannot be negative")

        if not 0 <= self.blur_level <= 10:
            raise ValueError("blur_level must be within [0, 10]")

        if isinstance(self.media_type, str):
            self.media_type = MediaType(self.media_type)
        if isinstance(self.media_count, dict):
            self.media_count = MediaCount(**self.media_count)

        self.liked_by = set(self.liked_by)
        self.shared_by = set(self.shared_by)
        self.tags = normalize_tags(self.tags)
        self.created_at = ensure_utc(self.created_at) or utc_now()

    # =========================================================================
    # VISIBILITY
    # =========================================================================

    def is_visible_to(self, is_admin: bool) -> bool:
        """Hidden items are only visible to admins"""
        return is_admin or not self.is_hidden

    def can_be_deleted(self, min_age_hours: int = 24, now: Optional[datetime] = None) -> bool:
        """Creators may only delete cards older than the minimum age"""
        now = now or utc_now()
        return now - self.created_at > timedelta(hours=min_age_hours)

    # =========================================================================
    # ENGAGEMENT
    # =========================================================================

    def toggle_like(self, user_id: str) -> bool:
        """
        Pure toggle.

        Returns:
            True if the item is now liked by the user
        """
        if user_id in self.liked_by:
            self.liked_by.discard(user_id)
            return False
        self.liked_by.add(user_id)
        return True

    def react(self, user_id: str, emoji: str) -> Optional[str]:
        """
        Set a reaction; sending the same emoji again removes it.

        Returns:
            The user's reaction after the call, or None if cleared
        """
        if self.user_reactions.get(user_id) == emoji:
            del self.user_reactions[user_id]
            return None
        self.user_reactions[user_id] = emoji
        return emoji

    def share(self, user_id: str) -> bool:
        """
        Record a share; idempotent per user.

        Returns:
            True if this was a new share
        """
        if user_id in self.shared_by:
            return False
        self.shared_by.add(user_id)
        return True

    @property
    def like_count(self) -> int:
        return len(self.liked_by)

    @property
    def share_count(self) -> int:
        return len(self.shared_by)

    def reaction_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for emoji in self.user_reactions.values():
            if emoji:
                counts[emoji] = counts.get(emoji, 0) + 1
        return counts
