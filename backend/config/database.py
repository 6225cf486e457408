"""
Database Configuration
======================

Centralized connection configuration for the API process.
Handles PostgreSQL and (optional) Redis connections with env var handling.
"""
import os
from typing import Optional
from dataclasses import dataclass


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    host: str
    port: int
    user: str
    password: str
    database: str
    min_size: int = 2
    max_size: int = 10

    @classmethod
    def from_env(cls, min_size: int = 2, max_size: int = 10) -> 'PostgresConfig':
        """Create config from environment variables."""
        return cls(
            host=os.getenv('POSTGRES_HOST', 'localhost'),
            port=int(os.getenv('POSTGRES_PORT', '5432')),
            user=os.getenv('POSTGRES_USER', 'funfans_user'),
            password=os.getenv('POSTGRES_PASSWORD', 'funfans_pass'),
            database=os.getenv('POSTGRES_DB', 'funfans'),
            min_size=min_size,
            max_size=max_size,
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'min_size': self.min_size,
            'max_size': self.max_size,
        }


@dataclass
class RedisConfig:
    """Redis connection configuration."""
    url: str

    @classmethod
    def from_env(cls) -> Optional['RedisConfig']:
        """Create config from environment variables, None when Redis is not configured."""
        url = os.getenv('REDIS_URL')
        if not url:
            return None
        return cls(url=url)


def get_postgres_config(min_size: int = 2, max_size: int = 10) -> PostgresConfig:
    """Get PostgreSQL configuration from environment."""
    return PostgresConfig.from_env(min_size=min_size, max_size=max_size)


def get_redis_config() -> Optional[RedisConfig]:
    """Get Redis configuration from environment."""
    return RedisConfig.from_env()


async def create_postgres_pool(min_size: int = 2, max_size: int = 10):
    """Create PostgreSQL connection pool from environment config."""
    import asyncpg
    config = get_postgres_config(min_size=min_size, max_size=max_size)
    return await asyncpg.create_pool(**config.to_asyncpg_kwargs())


async def create_redis_client():
    """Create an asyncio Redis client, or None when REDIS_URL is unset."""
    config = get_redis_config()
    if config is None:
        return None
    import redis.asyncio as redis
    return redis.from_url(config.url, decode_responses=True)
