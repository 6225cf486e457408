"""
Content API router

Paywalled cards: listing, creation, deletion and engagement.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional, Set
import logging

from models.api.content import ContentCreate, ContentItemResponse, ReactionRequest
from models.domain.user import User
from services.content_service import ContentService
from services.credits_service import CreditsService
from services.errors import CreditsError
from api.dependencies import get_active_user, get_content_service, get_credits_service, get_viewer
from api.errors import http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/content", tags=["content"])


async def _unlocked_ids(credits: CreditsService, viewer: Optional[User]) -> Set[str]:
    if not viewer:
        return set()
    store = await credits.store_for(viewer.user_id)
    return store.unlocks.ids()


def _render(items, viewer: Optional[User], unlocked: Set[str]) -> List[ContentItemResponse]:
    return [ContentItemResponse.from_domain(item, viewer, item.id in unlocked) for item in items]


async def _render_one(credits: CreditsService, item, viewer: Optional[User]) -> ContentItemResponse:
    unlocked = await _unlocked_ids(credits, viewer)
    return ContentItemResponse.from_domain(item, viewer, item.id in unlocked)


@router.get("", response_model=List[ContentItemResponse])
async def list_content(
    tag: Optional[str] = None,
    creator_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    viewer: Optional[User] = Depends(get_viewer),
    content: ContentService = Depends(get_content_service),
    credits: CreditsService = Depends(get_credits_service)
):
    """
    List cards

    Hidden cards are only listed for admins. Optional tag and creator filters,
    paged newest first with offset/limit.
    """
    items = await content.list_items(viewer, tag=tag, creator_id=creator_id, limit=limit, offset=offset)
    return _render(items, viewer, await _unlocked_ids(credits, viewer))


@router.get("/showcase", response_model=List[ContentItemResponse])
async def showcase(
    viewer: Optional[User] = Depends(get_viewer),
    content: ContentService = Depends(get_content_service),
    credits: CreditsService = Depends(get_credits_service)
):
    """Cards from the curated showcase creators"""
    items = await content.showcase(viewer)
    return _render(items, viewer, await _unlocked_ids(credits, viewer))


@router.get("/{item_id}", response_model=ContentItemResponse)
async def get_content(
    item_id: str,
    viewer: Optional[User] = Depends(get_viewer),
    content: ContentService = Depends(get_content_service),
    credits: CreditsService = Depends(get_credits_service)
):
    try:
        item = await content.get(item_id, viewer)
    except CreditsError as e:
        raise http_error(e)
    return await _render_one(credits, item, viewer)


@router.post("", response_model=ContentItemResponse, status_code=201)
async def create_content(
    body: ContentCreate,
    user: User = Depends(get_active_user),
    content: ContentService = Depends(get_content_service)
):
    """
    Publish a card

    Requires the content creation feature to be enabled.
    """
    try:
        item = await content.create(
            user,
            title=body.title,
            price=body.price,
            image_url=body.image_url,
            offer_text=body.offer_text,
            media_type=body.media_type.value,
            images=body.images,
            videos=body.videos,
            blur_level=body.blur_level,
            external_link=body.external_link,
            tags=body.tags,
        )
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return ContentItemResponse.from_domain(item, user)


@router.delete("/{item_id}")
async def delete_content(
    item_id: str,
    user: User = Depends(get_active_user),
    content: ContentService = Depends(get_content_service)
):
    """
    Delete a card

    Creators may delete their own cards 24 hours after publishing.
    """
    try:
        await content.delete(user, item_id)
    except CreditsError as e:
        raise http_error(e)
    return {"status": "deleted", "id": item_id}


@router.post("/{item_id}/like", response_model=ContentItemResponse)
async def toggle_like(
    item_id: str,
    user: User = Depends(get_active_user),
    content: ContentService = Depends(get_content_service),
    credits: CreditsService = Depends(get_credits_service)
):
    try:
        item = await content.toggle_like(user, item_id)
    except CreditsError as e:
        raise http_error(e)
    return await _render_one(credits, item, user)


@router.post("/{item_id}/react", response_model=ContentItemResponse)
async def react(
    item_id: str,
    body: ReactionRequest,
    user: User = Depends(get_active_user),
    content: ContentService = Depends(get_content_service),
    credits: CreditsService = Depends(get_credits_service)
):
    """Same emoji again removes the reaction"""
    try:
        item = await content.react(user, item_id, body.emoji)
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return await _render_one(credits, item, user)


@router.post("/{item_id}/share", response_model=ContentItemResponse)
async def share(
    item_id: str,
    user: User = Depends(get_active_user),
    content: ContentService = Depends(get_content_service),
    credits: CreditsService = Depends(get_credits_service)
):
    try:
        item = await content.share(user, item_id)
    except CreditsError as e:
        raise http_error(e)
    return await _render_one(credits, item, user)
