"""
Pydantic models for content items
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Union

from models.domain.content import ContentItem, MediaType
from models.domain.user import User


class ContentCreate(BaseModel):
    """Request model for creating a card"""
    title: str = Field(min_length=1)
    price: int
    image_url: str = ""
    offer_text: Optional[str] = None
    media_type: MediaType = MediaType.IMAGE
    images: int = Field(default=0, ge=0)
    videos: int = Field(default=0, ge=0)
    blur_level: int = Field(default=5, ge=0, le=10)
    external_link: Optional[str] = None
    tags: Union[str, List[str], None] = None  # "a, b" or ["a", "b"]


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1)


class ContentItemResponse(BaseModel):
    """
    Card as seen by a viewer.

    external_link is only revealed to the creator, admins and buyers who
    unlocked the card.
    """
    id: str
    creator_id: str
    title: str
    price: int
    image_url: str
    offer_text: Optional[str] = None
    media_type: MediaType
    images: int
    videos: int
    is_hidden: bool
    blur_level: int
    external_link: Optional[str] = None
    tags: List[str]
    like_count: int
    share_count: int
    reactions: Dict[str, int]
    liked: bool = False
    my_reaction: Optional[str] = None
    is_unlocked: bool = False
    created_at: datetime

    @classmethod
    def from_domain(cls, item: ContentItem, viewer: Optional[User] = None,
                    unlocked: bool = False) -> 'ContentItemResponse':
        viewer_id = viewer.user_id if viewer else None
        is_owner = viewer_id is not None and viewer_id == item.creator_id
        can_open = unlocked or is_owner or bool(viewer and viewer.is_developer)
        return cls(
            id=item.id,
            creator_id=item.creator_id,
            title=item.title,
            price=item.price,
            image_url=item.image_url,
            offer_text=item.offer_text,
            media_type=item.media_type,
            images=item.media_count.images,
            videos=item.media_count.videos,
            is_hidden=item.is_hidden,
            blur_level=item.blur_level,
            external_link=item.external_link if can_open else None,
            tags=item.tags,
            like_count=item.like_count,
            share_count=item.share_count,
            reactions=item.reaction_counts(),
            liked=viewer_id in item.liked_by if viewer_id else False,
            my_reaction=item.user_reactions.get(viewer_id) if viewer_id else None,
            is_unlocked=unlocked,
            created_at=item.created_at,
        )


class BulkModerationResponse(BaseModel):
    creator_id: str
    affected: int
