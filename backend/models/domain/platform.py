"""
Platform-wide configuration and moderation models

Storage: PostgreSQL (admin_settings, user_timeouts, showcased_users)
"""
from dataclasses import dataclass, asdict, fields, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from utils.datetime_utils import utc_now, ensure_utc


@dataclass(frozen=True)
class DevSettings:
    """
    Admin-tunable settings.

    Readers take a point-in-time snapshot; updates produce a new instance.
    """
    platform_commission: float = 0.50
    credit_value_usd: float = 0.01
    withdrawal_cooldown_hours: int = 24
    max_images_per_card: int = 5
    max_videos_per_card: int = 2
    comments_enabled: bool = False

    def __post_init__(self):
        if not 0 <= self.platform_commission <= 1:
            raise ValueError("platform_commission must be within [0, 1]")
        if self.credit_value_usd <= 0:
            raise ValueError("credit_value_usd must be positive")
        if self.withdrawal_cooldown_hours < 0:
            raise ValueError("withdrawal_cooldown_hours cannot be negative")
        if self.max_images_per_card < 0 or self.max_videos_per_card < 0:
            raise ValueError("Media caps cannot be negative")

    def updated(self, **changes) -> 'DevSettings':
        """Return a copy with the given fields changed (validated)"""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SidebarVisibility:
    """Feature flags toggled from the admin panel"""
    store: bool = True
    outfit_generator: bool = True
    theme_generator: bool = True
    manage_subscription: bool = True
    earn_credits: bool = True
    create_content: bool = False
    my_creations: bool = False
    creator_payouts: bool = False

    def updated(self, **changes) -> 'SidebarVisibility':
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown visibility flags: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class UserTimeout:
    """Moderation record gating all access for a user until end_time"""
    user_id: str
    end_time: datetime
    message: str

    @classmethod
    def for_hours(cls, user_id: str, duration_hours: float, message: str,
                  now: Optional[datetime] = None) -> 'UserTimeout':
        if duration_hours <= 0:
            raise ValueError("Timeout duration must be positive")
        now = now or utc_now()
        return cls(user_id=user_id, end_time=now + timedelta(hours=duration_hours), message=message)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return now < ensure_utc(self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "end_time": self.end_time.isoformat(),
            "message": self.message,
        }
