"""
User domain model
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Set
import uuid


class UserRole(str, Enum):
    """Account roles"""
    USER = "user"
    CREATOR = "creator"
    DEVELOPER = "developer"  # platform admin


@dataclass
class User:
    """
    User domain model - storage-agnostic representation

    Storage: PostgreSQL (users table, follows table for the social graph)

    Note: Users keep UUID format (not short IDs like content items).
    """
    user_id: str  # UUID format (not short ID)
    email: str
    username: str = ""

    role: UserRole = UserRole.USER

    # Profile
    profile_picture_url: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    vitrine_slug: Optional[str] = None

    # Credentials (never serialized to clients)
    password_hash: Optional[str] = None

    # Credits
    credits_balance: int = 0

    # Social graph
    followers: Set[str] = field(default_factory=set)
    following: Set[str] = field(default_factory=set)

    # Timestamps
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    def __post_init__(self):
        """Generate UUID and derive defaults if not provided"""
        if not self.user_id:
            self.user_id = str(uuid.uuid4())
        if not self.username:
            self.username = self.email.split('@')[0]
        if not self.vitrine_slug:
            self.vitrine_slug = self.user_id
        if isinstance(self.role, str):
            self.role = UserRole(self.role)
        self.followers = set(self.followers)
        self.following = set(self.following)

    @property
    def is_developer(self) -> bool:
        return self.role == UserRole.DEVELOPER

    @property
    def is_creator(self) -> bool:
        return self.role in (UserRole.CREATOR, UserRole.DEVELOPER)

    def has_credits_for(self, amount: int) -> bool:
        """Check if the balance covers a price"""
        return self.credits_balance >= amount


def follow(follower: User, followee: User) -> bool:
    """
    Add a follow edge to both sides of the relationship.

    Returns:
        True if the graph changed, False for self-follows or existing edges
    """
    if follower.user_id == followee.user_id:
        return False
    if followee.user_id in follower.following:
        return False
    follower.following.add(followee.user_id)
    followee.followers.add(follower.user_id)
    return True


def unfollow(follower: User, followee: User) -> bool:
    """
    Remove a follow edge from both sides of the relationship.

    Returns:
        True if the graph changed
    """
    if followee.user_id not in follower.following:
        return False
    follower.following.discard(followee.user_id)
    followee.followers.discard(follower.user_id)
    return True
