"""
Pydantic models for the admin panel
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class DevSettingsModel(BaseModel):
    platform_commission: float
    credit_value_usd: float
    withdrawal_cooldown_hours: int
    max_images_per_card: int
    max_videos_per_card: int
    comments_enabled: bool

    model_config = {"from_attributes": True}


class DevSettingsUpdate(BaseModel):
    """Partial update; range checks happen in the domain model"""
    platform_commission: Optional[float] = None
    credit_value_usd: Optional[float] = None
    withdrawal_cooldown_hours: Optional[int] = None
    max_images_per_card: Optional[int] = None
    max_videos_per_card: Optional[int] = None
    comments_enabled: Optional[bool] = None


class SidebarVisibilityModel(BaseModel):
    store: bool
    outfit_generator: bool
    theme_generator: bool
    manage_subscription: bool
    earn_credits: bool
    create_content: bool
    my_creations: bool
    creator_payouts: bool

    model_config = {"from_attributes": True}


class SidebarVisibilityUpdate(BaseModel):
    store: Optional[bool] = None
    outfit_generator: Optional[bool] = None
    theme_generator: Optional[bool] = None
    manage_subscription: Optional[bool] = None
    earn_credits: Optional[bool] = None
    create_content: Optional[bool] = None
    my_creations: Optional[bool] = None
    creator_payouts: Optional[bool] = None


class TimeoutRequest(BaseModel):
    duration_hours: float = Field(gt=0)
    message: str = Field(min_length=1)


class TimeoutResponse(BaseModel):
    user_id: str
    end_time: datetime
    message: str

    model_config = {"from_attributes": True}


class ShowcaseRequest(BaseModel):
    user_ids: List[str]


class ShowcaseResponse(BaseModel):
    user_ids: List[str]


class CapabilitiesResponse(BaseModel):
    role: str
    capabilities: List[str]
