"""
Account Service - email/password accounts and profiles

Balances are persistent: a new account receives the initial balance once,
at creation, and signing in never resets credits, earnings or unlocks.
"""
import logging
from typing import Optional, Tuple

from jose import JWTError

from middleware.jwt_session import (
    create_access_token,
    create_password_reset_token,
    decode_password_reset_token,
)
from middleware.passwords import hash_password, verify_password
from models.domain.user import User, UserRole
from services.config_store import require_developer
from services.errors import AccountConflictError, AuthenticationError, UserNotFoundError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "username",
    "profile_picture_url",
    "full_name",
    "date_of_birth",
    "gender",
    "phone",
    "vitrine_slug",
)


class AccountService:
    def __init__(self, user_repo, initial_balance: int = 100):
        self.user_repo = user_repo
        self.initial_balance = initial_balance

    async def sign_up(self, email: str, password: str, username: Optional[str] = None) -> Tuple[User, str]:
        """
        Create an account and open a session.

        Returns:
            (user, access token)

        Raises:
            AccountConflictError: email already registered
            ValueError: password too short
        """
        if await self.user_repo.get_by_email(email):
            raise AccountConflictError("Email already registered")

        user = User(
            user_id="",  # Will be generated in __post_init__
            email=email,
            username=username or "",
            role=UserRole.USER,
            password_hash=hash_password(password),
        )
        user = await self.user_repo.create(user, initial_balance=self.initial_balance)
        return user, create_access_token(user)

    async def sign_in(self, email: str, password: str) -> Tuple[User, str]:
        user = await self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        await self.user_repo.update_last_login(user.user_id)
        logger.info(f"User {user.user_id} signed in")
        return user, create_access_token(user)

    async def reset_password(self, email: str) -> Optional[str]:
        """
        Issue a password reset token.

        Delivery happens out of band; only the issuance is logged.
        Unknown emails get no token but the same outward response.
        """
        user = await self.user_repo.get_by_email(email)
        if not user:
            logger.info(f"Password reset requested for unknown email {email}")
            return None
        token = create_password_reset_token(user)
        logger.info(f"Password reset token issued for user {user.user_id}")
        return token

    async def confirm_password_reset(self, token: str, new_password: str) -> User:
        try:
            payload = decode_password_reset_token(token)
        except JWTError:
            raise AuthenticationError("Invalid or expired reset token")

        user = await self.user_repo.get_by_id(payload["sub"])
        if not user:
            raise UserNotFoundError(payload["sub"])

        user.password_hash = hash_password(new_password)
        await self.user_repo.update_password(user.user_id, user.password_hash)
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def update_profile(self, user_id: str, changes: dict) -> User:
        """Apply profile changes; unknown or credential fields are ignored"""
        user = await self.get_user(user_id)
        for field_name in PROFILE_FIELDS:
            if field_name in changes and changes[field_name] is not None:
                setattr(user, field_name, changes[field_name])

        if not user.username.strip():
            raise ValueError("Username cannot be empty")
        if not user.vitrine_slug.strip():
            raise ValueError("Vitrine slug cannot be empty")

        existing = await self.user_repo.get_by_vitrine_slug(user.vitrine_slug)
        if existing and existing.user_id != user.user_id:
            raise AccountConflictError("Vitrine slug already taken")

        return await self.user_repo.update_profile(user)

    async def list_users(self, actor: User):
        require_developer(actor)
        return await self.user_repo.list_all()

    async def set_role(self, actor: User, user_id: str, role: UserRole) -> User:
        require_developer(actor)
        user = await self.get_user(user_id)
        user.role = UserRole(role)
        await self.user_repo.update_role(user_id, user.role.value)
        return user
