"""
Core module - Configuration, database, Redis, rate limiting, and security.
"""

from app.core.config import get_settings, settings
from app.core.database import Base, async_session_maker, close_db, get_db, init_db
from app.core.rate_limit import RateLimitExceeded, enforce_rate_limit
from app.core.redis import close_redis, get_redis, init_redis
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "async_session_maker",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Rate limiting
    "enforce_rate_limit",
    "RateLimitExceeded",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
