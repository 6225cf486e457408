"""
Admin API router (developer role only)

Endpoints:
- GET/PATCH /api/admin/settings - Dev settings (commission, caps, cooldown)
- GET/PATCH /api/admin/sidebar - Feature flags
- GET /api/admin/users - All users
- PATCH /api/admin/users/{user_id}/role - Change a role
- POST /api/admin/users/{user_id}/credits - Grant credits
- PUT/DELETE /api/admin/users/{user_id}/subscription - Assign / cancel a plan
- PUT/DELETE /api/admin/users/{user_id}/timeout - Set / clear a timeout
- GET /api/admin/subscriptions - All subscriptions
- GET /api/admin/content - All cards, hidden included (offset/limit paging)
- POST /api/admin/content/{item_id}/toggle-hidden, DELETE /api/admin/content/{item_id}
- POST /api/admin/creators/{creator_id}/hide-all, DELETE /api/admin/creators/{creator_id}/content
- GET/PUT /api/admin/showcase - Showcased creators
- PUT /api/admin/plans/{plan_id}, PUT /api/admin/packages/{package_id} - Catalog
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
import logging

from models.api.admin import (
    DevSettingsModel,
    DevSettingsUpdate,
    ShowcaseRequest,
    ShowcaseResponse,
    SidebarVisibilityModel,
    SidebarVisibilityUpdate,
    TimeoutRequest,
    TimeoutResponse,
)
from models.api.content import BulkModerationResponse, ContentItemResponse
from models.api.credits import GrantCreditsRequest, TransactionResponse
from models.api.store import AssignPlanRequest, PackageModel, PackageResponse, PlanModel, SubscriptionResponse
from models.api.user import RoleUpdate, UserResponse
from models.domain.user import User
from services.account_service import AccountService
from services.config_store import ConfigStore
from services.content_service import ContentService
from services.credits_service import CreditsService
from services.errors import CreditsError
from services.moderation_service import ModerationService
from services.store_service import StoreService
from api.dependencies import (
    get_account_service,
    get_config_store,
    get_content_service,
    get_credits_service,
    get_moderation_service,
    get_store_service,
    require_developer,
)
from api.errors import http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


# =============================================================================
# SETTINGS
# =============================================================================

@router.get("/settings", response_model=DevSettingsModel)
async def get_dev_settings(
    admin: User = Depends(require_developer),
    config_store: ConfigStore = Depends(get_config_store)
):
    return DevSettingsModel.model_validate(await config_store.get_dev_settings())


@router.patch("/settings", response_model=DevSettingsModel)
async def update_dev_settings(
    body: DevSettingsUpdate,
    admin: User = Depends(require_developer),
    config_store: ConfigStore = Depends(get_config_store)
):
    """Commission changes apply to purchases that start afterwards"""
    try:
        updated = await config_store.update_dev_settings(admin, body.model_dump(exclude_none=True))
    except CreditsError as e:
        raise http_error(e)
    return DevSettingsModel.model_validate(updated)


@router.get("/sidebar", response_model=SidebarVisibilityModel)
async def get_sidebar_visibility(
    admin: User = Depends(require_developer),
    config_store: ConfigStore = Depends(get_config_store)
):
    return SidebarVisibilityModel.model_validate(await config_store.get_sidebar_visibility())


@router.patch("/sidebar", response_model=SidebarVisibilityModel)
async def update_sidebar_visibility(
    body: SidebarVisibilityUpdate,
    admin: User = Depends(require_developer),
    config_store: ConfigStore = Depends(get_config_store)
):
    try:
        updated = await config_store.update_sidebar_visibility(admin, body.model_dump(exclude_none=True))
    except CreditsError as e:
        raise http_error(e)
    return SidebarVisibilityModel.model_validate(updated)


# =============================================================================
# USERS
# =============================================================================

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    admin: User = Depends(require_developer),
    accounts: AccountService = Depends(get_account_service)
):
    users = await accounts.list_users(admin)
    return [UserResponse.from_domain(u) for u in users]


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def set_role(
    user_id: str,
    body: RoleUpdate,
    admin: User = Depends(require_developer),
    accounts: AccountService = Depends(get_account_service)
):
    try:
        user = await accounts.set_role(admin, user_id, body.role)
    except CreditsError as e:
        raise http_error(e)
    return UserResponse.from_domain(user)


@router.post("/users/{user_id}/credits", response_model=TransactionResponse)
async def grant_credits(
    user_id: str,
    body: GrantCreditsRequest,
    admin: User = Depends(require_developer),
    credits: CreditsService = Depends(get_credits_service)
):
    try:
        transaction = await credits.grant_credits(admin, user_id, body.amount, body.description)
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return TransactionResponse.model_validate(transaction)


@router.put("/users/{user_id}/subscription", response_model=SubscriptionResponse)
async def assign_subscription(
    user_id: str,
    body: AssignPlanRequest,
    admin: User = Depends(require_developer),
    store: StoreService = Depends(get_store_service)
):
    """Replaces whatever plan the user had"""
    try:
        subscription = await store.assign_subscription(admin, user_id, body.plan_id)
    except CreditsError as e:
        raise http_error(e)
    return SubscriptionResponse.from_domain(subscription)


@router.delete("/users/{user_id}/subscription")
async def cancel_subscription(
    user_id: str,
    admin: User = Depends(require_developer),
    store: StoreService = Depends(get_store_service)
):
    cancelled = await store.admin_cancel_subscription(admin, user_id)
    if not cancelled:
        raise HTTPException(status_code=404, detail="User has no subscription")
    return {"cancelled": True}


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
async def list_subscriptions(
    admin: User = Depends(require_developer),
    store: StoreService = Depends(get_store_service)
):
    subscriptions = await store.list_subscriptions(admin)
    return [SubscriptionResponse.from_domain(s) for s in subscriptions]


@router.put("/users/{user_id}/timeout", response_model=TimeoutResponse)
async def set_timeout(
    user_id: str,
    body: TimeoutRequest,
    admin: User = Depends(require_developer),
    moderation: ModerationService = Depends(get_moderation_service)
):
    try:
        timeout = await moderation.set_timeout(admin, user_id, body.duration_hours, body.message)
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return TimeoutResponse.model_validate(timeout)


@router.delete("/users/{user_id}/timeout")
async def clear_timeout(
    user_id: str,
    admin: User = Depends(require_developer),
    moderation: ModerationService = Depends(get_moderation_service)
):
    cleared = await moderation.clear_timeout(admin, user_id)
    return {"cleared": cleared}


# =============================================================================
# CONTENT MODERATION
# =============================================================================

@router.get("/content", response_model=List[ContentItemResponse])
async def list_all_content(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_developer),
    content: ContentService = Depends(get_content_service)
):
    """Every card, hidden ones included, newest first"""
    items = await content.list_items(admin, limit=limit, offset=offset)
    return [ContentItemResponse.from_domain(item, admin) for item in items]


@router.post("/content/{item_id}/toggle-hidden", response_model=ContentItemResponse)
async def toggle_hidden(
    item_id: str,
    admin: User = Depends(require_developer),
    content: ContentService = Depends(get_content_service)
):
    try:
        item = await content.toggle_hidden(admin, item_id)
    except CreditsError as e:
        raise http_error(e)
    return ContentItemResponse.from_domain(item, admin)


@router.delete("/content/{item_id}")
async def remove_content(
    item_id: str,
    admin: User = Depends(require_developer),
    content: ContentService = Depends(get_content_service)
):
    """Admins may remove a card regardless of its age"""
    try:
        await content.delete(admin, item_id)
    except CreditsError as e:
        raise http_error(e)
    return {"status": "deleted", "id": item_id}


@router.post("/creators/{creator_id}/hide-all", response_model=BulkModerationResponse)
async def hide_all_from_creator(
    creator_id: str,
    admin: User = Depends(require_developer),
    content: ContentService = Depends(get_content_service)
):
    affected = await content.hide_all_from_creator(admin, creator_id)
    return BulkModerationResponse(creator_id=creator_id, affected=affected)


@router.delete("/creators/{creator_id}/content", response_model=BulkModerationResponse)
async def delete_all_from_creator(
    creator_id: str,
    admin: User = Depends(require_developer),
    content: ContentService = Depends(get_content_service)
):
    affected = await content.delete_all_from_creator(admin, creator_id)
    return BulkModerationResponse(creator_id=creator_id, affected=affected)


@router.get("/showcase", response_model=ShowcaseResponse)
async def get_showcase(
    admin: User = Depends(require_developer),
    moderation: ModerationService = Depends(get_moderation_service)
):
    return ShowcaseResponse(user_ids=await moderation.get_showcase_ids())


@router.put("/showcase", response_model=ShowcaseResponse)
async def set_showcase(
    body: ShowcaseRequest,
    admin: User = Depends(require_developer),
    moderation: ModerationService = Depends(get_moderation_service)
):
    try:
        user_ids = await moderation.set_showcase_ids(admin, body.user_ids)
    except CreditsError as e:
        raise http_error(e)
    return ShowcaseResponse(user_ids=user_ids)


# =============================================================================
# CATALOG
# =============================================================================

@router.put("/plans/{plan_id}", response_model=PlanModel)
async def save_plan(
    plan_id: str,
    body: PlanModel,
    admin: User = Depends(require_developer),
    store: StoreService = Depends(get_store_service)
):
    if body.id != plan_id:
        raise HTTPException(status_code=400, detail="Plan id mismatch")
    try:
        plan = await store.save_plan(admin, body.to_domain())
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return PlanModel.model_validate(plan)


@router.put("/packages/{package_id}", response_model=PackageResponse)
async def save_package(
    package_id: str,
    body: PackageModel,
    admin: User = Depends(require_developer),
    store: StoreService = Depends(get_store_service)
):
    if body.id != package_id:
        raise HTTPException(status_code=400, detail="Package id mismatch")
    try:
        package = await store.save_package(admin, body.to_domain())
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return PackageResponse.from_domain(package)
