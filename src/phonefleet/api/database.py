"""Database utilities for the Phone Fleet backend.

This module provides:
    - database_transaction(): one connection, one transaction, commit on
      clean exit and rollback on exception
    - database_connection(): a pooled connection without a transaction
    - Pool creation, shutdown and a health probe
    - Conversion of driver errors into the FleetError hierarchy

Example:
    async with database_transaction(pool, lock_timeout_ms=5000) as conn:
        device = await conn.fetchrow("SELECT ... FROM devices WHERE id = $1 FOR UPDATE", device_id)
        await conn.execute("INSERT INTO assignments ...")
        await conn.execute("UPDATE devices ...")
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from .exceptions import (
    ConnectionPoolError,
    DatabaseError,
    FleetError,
    IntegrityError,
    TransactionError,
)

logger = logging.getLogger(__name__)

ACQUIRE_TIMEOUT_SECONDS = 30.0

APPLICATION_NAME = "phonefleet"

# SQLSTATE codes the lifecycle and sync paths care about
_INTEGRITY_SQLSTATES = {
    "23505": "unique",
    "23503": "foreign_key",
    "23502": "not_null",
    "23514": "check",
}
_TRANSACTION_SQLSTATES = {
    "40001": "serialization",
    "40P01": "deadlock",
    "55P03": "lock_timeout",
    "57014": "query_canceled",
}


async def _acquire(pool) -> Any:
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")
    try:
        return await asyncio.wait_for(pool.acquire(), timeout=ACQUIRE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise ConnectionPoolError(
            "Timeout acquiring database connection",
            details={"timeout_seconds": ACQUIRE_TIMEOUT_SECONDS},
        )
    except Exception as e:
        raise ConnectionPoolError(
            f"Failed to acquire database connection: {e}",
            cause=e,
        )


# ============================================
# Transaction Context Managers
# ============================================

@asynccontextmanager
async def database_transaction(
    pool,
    isolation: str = "read_committed",
    lock_timeout_ms: Optional[int] = None,
) -> AsyncIterator[Any]:
    """Run a block inside one transaction with automatic commit/rollback.

    FleetError subclasses raised inside the block (the lifecycle guards)
    roll back and propagate unchanged; driver errors are converted to
    DatabaseError subtypes.

    Args:
        pool: asyncpg connection pool
        isolation: Transaction isolation level
            ("serializable", "repeatable_read", "read_committed")
        lock_timeout_ms: When set, a row lock (SELECT ... FOR UPDATE) that
            waits longer than this fails with TransactionError instead of
            blocking the request

    Yields:
        Database connection within the transaction

    Raises:
        ConnectionPoolError: If a connection cannot be acquired
        TransactionError: If the transaction cannot start, deadlocks or
            times out waiting for a lock
        IntegrityError: If a constraint is violated
    """
    conn = await _acquire(pool)
    try:
        transaction = conn.transaction(isolation=isolation)
        try:
            await transaction.start()
            if lock_timeout_ms:
                await conn.execute(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}")
        except Exception as e:
            raise TransactionError(f"Failed to start transaction: {e}", cause=e)

        try:
            yield conn
            await transaction.commit()
        except Exception as e:
            try:
                await transaction.rollback()
                logger.debug("Transaction rolled back due to exception")
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")
            raise _convert_db_exception(e)
    finally:
        await pool.release(conn)


@asynccontextmanager
async def database_connection(pool) -> AsyncIterator[Any]:
    """Pooled connection without a transaction, for reads and single statements."""
    conn = await _acquire(pool)
    try:
        yield conn
    finally:
        await pool.release(conn)


# ============================================
# Error Conversion
# ============================================

def _convert_db_exception(e: Exception) -> FleetError:
    """Convert a driver exception to the matching FleetError subtype.

    asyncpg errors carry a SQLSTATE; other exceptions are classified by
    their message.
    """
    if isinstance(e, FleetError):
        return e

    sqlstate = getattr(e, "sqlstate", None)
    constraint = getattr(e, "constraint_name", None)

    if sqlstate in _INTEGRITY_SQLSTATES:
        return IntegrityError(
            f"Constraint violation: {e}",
            constraint=_INTEGRITY_SQLSTATES[sqlstate],
            details={"constraint_name": constraint} if constraint else {},
            cause=e,
        )
    if sqlstate in _TRANSACTION_SQLSTATES:
        return TransactionError(
            f"Transaction aborted: {e}",
            operation=_TRANSACTION_SQLSTATES[sqlstate],
            cause=e,
        )

    error_str = str(e).lower()

    if "unique" in error_str or "duplicate" in error_str:
        return IntegrityError(f"Duplicate entry: {e}", constraint="unique", cause=e)
    if "foreign key" in error_str:
        return IntegrityError(f"Foreign key violation: {e}", constraint="foreign_key", cause=e)
    if "not null" in error_str:
        return IntegrityError(f"Not null violation: {e}", constraint="not_null", cause=e)
    if "deadlock" in error_str:
        return TransactionError(f"Deadlock detected: {e}", operation="deadlock", cause=e)
    if "timeout" in error_str or "timed out" in error_str:
        return TransactionError(
            f"Database operation timed out: {e}",
            operation="query",
            cause=e,
        )

    return DatabaseError(f"Database operation failed: {e}", cause=e)


# ============================================
# Connection Pool Helpers
# ============================================

async def create_pool(
    database_url: str,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
    **kwargs,
):
    """Create the asyncpg pool shared by the sync and assignment paths.

    Args:
        database_url: PostgreSQL connection string
        min_size: Minimum pool connections
        max_size: Maximum pool connections
        command_timeout: Default statement timeout in seconds
        **kwargs: Additional asyncpg.create_pool arguments

    Raises:
        ConnectionPoolError: If pool creation fails
    """
    import asyncpg

    server_settings = {"application_name": APPLICATION_NAME}
    server_settings.update(kwargs.pop("server_settings", {}))

    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
            server_settings=server_settings,
            **kwargs,
        )
    except Exception as e:
        raise ConnectionPoolError(f"Failed to create database pool: {e}", cause=e)

    logger.info(f"Database pool created (min={min_size}, max={max_size})")
    return pool


async def close_pool(pool, timeout: float = 10.0):
    """Close the pool, terminating it if connections do not drain in time."""
    if pool is None:
        return

    try:
        await asyncio.wait_for(pool.close(), timeout=timeout)
        logger.info("Database pool closed")
    except asyncio.TimeoutError:
        logger.warning(f"Pool close timed out after {timeout}s, terminating")
        pool.terminate()
    except Exception as e:
        logger.error(f"Error closing pool: {e}")
        pool.terminate()


# ============================================
# Health Check
# ============================================

async def check_database_health(pool) -> dict[str, Any]:
    """Probe the database with SELECT 1 and report pool usage."""
    if pool is None:
        return {"healthy": False, "error": "Pool not initialized"}

    try:
        async with database_connection(pool) as conn:
            result = await conn.fetchval("SELECT 1")
    except Exception as e:
        return {"healthy": False, "error": str(e)}

    pool_size = pool.get_size()
    pool_free = pool.get_idle_size()
    return {
        "healthy": result == 1,
        "pool_size": pool_size,
        "pool_free": pool_free,
        "pool_used": pool_size - pool_free,
    }


__all__ = [
    "database_transaction",
    "database_connection",
    "create_pool",
    "close_pool",
    "check_database_health",
]
