"""
Authentication API router with email/password accounts and JWT
"""

from fastapi import APIRouter, Depends, Response
from typing import Optional

from config import get_settings
from models.api.admin import CapabilitiesResponse
from models.api.user import (
    PasswordResetConfirm,
    PasswordResetRequest,
    ProfileUpdate,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)
from models.domain.user import User
from services.account_service import AccountService
from services.config_store import ConfigStore
from services.errors import CreditsError
from api.dependencies import (
    get_account_service,
    get_active_user,
    get_config_store,
    get_viewer,
)
from api.errors import http_error

settings = get_settings()
router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        max_age=settings.jwt_expire_minutes * 60,
        samesite="lax",
        secure=settings.is_production
    )


@router.post("/signup", response_model=SessionResponse, status_code=201)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service)
):
    """
    Create an account

    New accounts start with the initial credit balance.
    """
    try:
        user, token = await accounts.sign_up(body.email, body.password, body.username)
    except (CreditsError, ValueError) as e:
        raise http_error(e)

    _set_session_cookie(response, token)
    return SessionResponse(user=UserResponse.from_domain(user), access_token=token)


@router.post("/signin", response_model=SessionResponse)
async def sign_in(
    body: SignInRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service)
):
    try:
        user, token = await accounts.sign_in(body.email, body.password)
    except CreditsError as e:
        raise http_error(e)

    _set_session_cookie(response, token)
    return SessionResponse(user=UserResponse.from_domain(user), access_token=token)


@router.post("/signout")
async def sign_out(response: Response):
    """Clears session cookie"""
    response.delete_cookie(key="access_token")
    return {"status": "signed_out"}


@router.post("/reset-password")
async def reset_password(
    body: PasswordResetRequest,
    accounts: AccountService = Depends(get_account_service)
):
    """
    Request a password reset

    Same answer whether or not the email is registered.
    """
    await accounts.reset_password(body.email)
    return {"status": "sent"}


@router.post("/reset-password/confirm")
async def confirm_password_reset(
    body: PasswordResetConfirm,
    accounts: AccountService = Depends(get_account_service)
):
    try:
        await accounts.confirm_password_reset(body.token, body.new_password)
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return {"status": "password_updated"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(user: User = Depends(get_active_user)):
    """
    Get current authenticated user info

    Returns 401 if not authenticated
    """
    return UserResponse.from_domain(user)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_active_user),
    accounts: AccountService = Depends(get_account_service)
):
    try:
        updated = await accounts.update_profile(user.user_id, body.model_dump(exclude_unset=True))
    except (CreditsError, ValueError) as e:
        raise http_error(e)
    return UserResponse.from_domain(updated)


@router.get("/capabilities", response_model=CapabilitiesResponse)
async def get_capabilities(
    user: User = Depends(get_active_user),
    config_store: ConfigStore = Depends(get_config_store)
):
    """Features available to the current user under the sidebar flags"""
    capabilities = await config_store.capabilities_for(user)
    return CapabilitiesResponse(
        role=user.role.value,
        capabilities=sorted(c.value for c in capabilities)
    )


@router.get("/status")
async def auth_status(user: Optional[User] = Depends(get_viewer)):
    """
    Check authentication status

    Returns user info if authenticated, null if not
    """
    if user:
        return {
            "authenticated": True,
            "user": UserResponse.from_domain(user)
        }

    return {
        "authenticated": False,
        "user": None
    }
