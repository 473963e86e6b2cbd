"""Process-wide resources shared by the sync and assignment routers.

Lifecycle Management:
- Database pool: Initialized at startup, shared across requests
- Closed at application shutdown

Configuration is read from the environment (entry points load `.env` with
python-dotenv first):
- DATABASE_URL: PostgreSQL connection string (required)
- DB_POOL_MIN / DB_POOL_MAX: pool bounds
"""

import os
from typing import TYPE_CHECKING, Optional

from .database import close_pool, create_pool
from .exceptions import ConfigurationError, ConnectionPoolError

if TYPE_CHECKING:
    import asyncpg

# ========== Global State ==========

# Global connection pool (initialized on startup)
_db_pool: Optional["asyncpg.Pool"] = None


def env_int(name: str, default: int) -> int:
    """Read an integer tunable from the environment."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            missing_keys=[name],
        )


async def init_db_pool() -> None:
    """Initialize the database connection pool.

    Should be called on application startup.
    """
    global _db_pool

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ConfigurationError(
            "DATABASE_URL environment variable is required",
            missing_keys=["DATABASE_URL"],
        )

    _db_pool = await create_pool(
        database_url,
        min_size=env_int("DB_POOL_MIN", 2),
        max_size=env_int("DB_POOL_MAX", 10),
    )


async def close_db_pool() -> None:
    """Close the database connection pool.

    Should be called on application shutdown.
    """
    global _db_pool
    if _db_pool:
        await close_pool(_db_pool)
        _db_pool = None


def get_db_pool() -> "asyncpg.Pool":
    """Get the database connection pool."""
    if _db_pool is None:
        raise ConnectionPoolError("Database pool not initialized. Call init_db_pool() first.")
    return _db_pool
