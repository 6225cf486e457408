"""
Authentication middleware and dependencies
"""

from fastapi import Request, HTTPException
from jose import JWTError
from typing import Optional

from models.domain.user import UserRole
from .jwt_session import decode_access_token


class UserPublic:
    """Minimal user info from JWT token"""
    def __init__(self, user_id: str, email: str, name: str, role: UserRole = UserRole.USER):
        self.user_id = user_id
        self.email = email
        self.name = name
        self.role = role


def _token_from_request(request: Request) -> Optional[str]:
    # Cookie first, then "Authorization: Bearer <token>"
    token = request.cookies.get("access_token")
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


async def get_current_user_optional(request: Request) -> Optional[UserPublic]:
    """
    Get current user from JWT token (optional - doesn't raise if not authenticated)

    Returns:
        UserPublic if authenticated, None otherwise
    """
    token = _token_from_request(request)

    if not token:
        return None

    try:
        payload = decode_access_token(token)

        return UserPublic(
            user_id=payload.get("sub"),
            email=payload.get("email"),
            name=payload.get("name"),
            role=UserRole(payload.get("role", UserRole.USER.value))
        )

    except (JWTError, ValueError):
        return None


async def get_current_user(request: Request) -> UserPublic:
    """
    Get current user (required - raises 401 if not authenticated)

    Returns:
        UserPublic

    Raises:
        HTTPException 401 if not authenticated
    """
    user = await get_current_user_optional(request)

    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return user
