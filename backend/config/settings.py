from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Optional
import os


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file (for secrets like the Stripe keys)
    - System environment

    Variable names match docker-compose conventions:
    - POSTGRES_HOST, POSTGRES_PORT, etc. (for database)
    - REDIS_URL (optional, enables the shared purchase lock)
    - STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET (for checkout)
    """

    # Environment
    environment: str = "development"

    # JWT - uses SECRET_KEY from .env or generates default
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440
    password_reset_expire_minutes: int = 30

    # PostgreSQL (from docker-compose)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "funfans_user"
    postgres_password: str = "funfans_pass"
    postgres_db: str = "funfans"
    database_url: Optional[str] = Field(default=None, validate_default=True)

    # Redis (optional)
    redis_url: Optional[str] = None
    purchase_lock_ttl_ms: int = 30000

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300
    stripe_api_base: str = "https://api.stripe.com/v1"
    checkout_success_url: str = "http://localhost:5173/store?checkout=success"
    checkout_cancel_url: str = "http://localhost:5173/store?checkout=cancel"

    # Public site (vitrine share links)
    public_base_url: str = "https://funfans.com"

    # Platform economy
    initial_balance: int = 100
    reward_amount: int = 100
    content_min_age_hours: int = 24

    # Dev settings defaults (seeded into admin_settings on first read)
    default_platform_commission: float = 0.50
    default_credit_value_usd: float = 0.01
    default_withdrawal_cooldown_hours: int = 24
    default_max_images_per_card: int = 5
    default_max_videos_per_card: int = 2
    settings_cache_ttl: int = 30

    # Per-user credits stores kept in memory (least recently used evicted)
    credits_store_max_users: int = 10000
    credits_store_history: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('jwt_secret_key', mode='before')
    @classmethod
    def get_jwt_secret(cls, v):
        """Use SECRET_KEY from env if JWT_SECRET_KEY not set"""
        if v and v != "dev-secret-key-change-in-production":
            return v
        return os.getenv('SECRET_KEY', v or 'dev-secret-key-change-in-production')

    @field_validator('database_url', mode='before')
    @classmethod
    def construct_database_url(cls, v, info):
        """Construct database URL from components if not explicitly set"""
        if v:
            return v

        data = info.data
        host = data.get('postgres_host', 'localhost')
        port = data.get('postgres_port', 5432)
        user = data.get('postgres_user', 'funfans_user')
        password = data.get('postgres_password', 'funfans_pass')
        db = data.get('postgres_db', 'funfans')

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('default_platform_commission')
    @classmethod
    def commission_in_range(cls, v):
        """Commission is a fraction of the sale price"""
        if not 0 <= v <= 1:
            raise ValueError("default_platform_commission must be within [0, 1]")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
