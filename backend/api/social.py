"""
Social API router - follows and vitrine pages
"""

from fastapi import APIRouter, Depends
from typing import List, Optional

from models.api.content import ContentItemResponse
from models.api.user import UserPublicProfile, UserResponse
from models.domain.user import User
from services.errors import CreditsError
from services.social_service import SocialService
from api.dependencies import get_active_user, get_social_service, get_viewer
from api.errors import http_error

router = APIRouter(prefix="/api/social", tags=["social"])


@router.post("/follow/{user_id}", response_model=UserResponse)
async def follow(
    user_id: str,
    user: User = Depends(get_active_user),
    social: SocialService = Depends(get_social_service)
):
    """Follow a user (repeats are no-ops)"""
    try:
        follower = await social.follow_user(user.user_id, user_id)
    except CreditsError as e:
        raise http_error(e)
    return UserResponse.from_domain(follower)


@router.delete("/follow/{user_id}", response_model=UserResponse)
async def unfollow(
    user_id: str,
    user: User = Depends(get_active_user),
    social: SocialService = Depends(get_social_service)
):
    try:
        follower = await social.unfollow_user(user.user_id, user_id)
    except CreditsError as e:
        raise http_error(e)
    return UserResponse.from_domain(follower)


@router.get("/vitrine-link")
async def vitrine_link(
    user: User = Depends(get_active_user),
    social: SocialService = Depends(get_social_service)
):
    """Share link to the current user's vitrine"""
    return {"url": social.vitrine_link(user)}


@router.get("/vitrine/{slug}")
async def get_vitrine(
    slug: str,
    viewer: Optional[User] = Depends(get_viewer),
    social: SocialService = Depends(get_social_service)
):
    """Public creator page: profile and visible cards"""
    try:
        owner, items = await social.get_vitrine(slug)
    except CreditsError as e:
        raise http_error(e)

    cards: List[ContentItemResponse] = [ContentItemResponse.from_domain(item, viewer) for item in items]
    return {
        "user": UserPublicProfile.from_domain(owner),
        "items": cards,
        "following": bool(viewer and owner.user_id in viewer.following),
    }
