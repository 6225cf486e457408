"""
Pydantic models for User
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List

from models.domain.user import User, UserRole


class SignUpRequest(BaseModel):
    """Model for creating an account"""
    email: EmailStr
    password: str = Field(min_length=6)
    username: Optional[str] = None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(min_length=6)


class ProfileUpdate(BaseModel):
    """Partial profile update; omitted fields are left unchanged"""
    username: Optional[str] = None
    profile_picture_url: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    vitrine_slug: Optional[str] = None


class RoleUpdate(BaseModel):
    role: UserRole


class UserPublicProfile(BaseModel):
    """Public user model (what other users see)"""
    user_id: str
    username: str
    profile_picture_url: Optional[str] = None
    vitrine_slug: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0

    @classmethod
    def from_domain(cls, user: User) -> 'UserPublicProfile':
        return cls(
            user_id=user.user_id,
            username=user.username,
            profile_picture_url=user.profile_picture_url,
            vitrine_slug=user.vitrine_slug,
            followers_count=len(user.followers),
            following_count=len(user.following),
        )


class UserResponse(BaseModel):
    """Full user response model (the account holder and admins)"""
    user_id: str
    email: str
    username: str
    role: UserRole
    profile_picture_url: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    vitrine_slug: Optional[str] = None
    credits_balance: int = 0
    followers: List[str] = []
    following: List[str] = []
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_domain(cls, user: User) -> 'UserResponse':
        response = cls.model_validate(user)
        # Sets have no stable order
        response.followers = sorted(user.followers)
        response.following = sorted(user.following)
        return response


class SessionResponse(BaseModel):
    """Returned by sign up / sign in (the token is also set as a cookie)"""
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
