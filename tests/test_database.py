"""Tests for the database utilities.

The pool and connection are mocks, so these run without PostgreSQL. They
cover commit/rollback behavior of database_transaction, driver error
conversion and the health check.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.phonefleet.api.database import (
    _convert_db_exception,
    check_database_health,
    close_pool,
    database_connection,
    database_transaction,
)
from src.phonefleet.api.exceptions import (
    ConnectionPoolError,
    DatabaseError,
    DeviceNotFoundError,
    IntegrityError,
    TransactionError,
)


def make_pool():
    transaction = MagicMock()
    transaction.start = AsyncMock()
    transaction.commit = AsyncMock()
    transaction.rollback = AsyncMock()

    conn = MagicMock()
    conn.transaction = MagicMock(return_value=transaction)
    conn.execute = AsyncMock()
    conn.fetchval = AsyncMock(return_value=1)

    pool = MagicMock()
    pool.acquire = AsyncMock(return_value=conn)
    pool.release = AsyncMock()
    pool.get_size = MagicMock(return_value=5)
    pool.get_idle_size = MagicMock(return_value=3)
    return pool, conn, transaction


class TestDatabaseTransaction:
    """Tests for database_transaction."""

    async def test_commits_on_success(self):
        pool, conn, transaction = make_pool()

        async with database_transaction(pool) as acquired:
            assert acquired is conn

        transaction.commit.assert_awaited_once()
        transaction.rollback.assert_not_awaited()
        conn.execute.assert_not_awaited()
        pool.release.assert_awaited_once_with(conn)

    async def test_sets_lock_timeout(self):
        pool, conn, _ = make_pool()

        async with database_transaction(pool, lock_timeout_ms=2500):
            pass

        conn.execute.assert_awaited_once_with("SET LOCAL lock_timeout = 2500")

    async def test_rolls_back_and_keeps_domain_errors(self):
        pool, conn, transaction = make_pool()

        with pytest.raises(DeviceNotFoundError):
            async with database_transaction(pool):
                raise DeviceNotFoundError("d-1")

        transaction.rollback.assert_awaited_once()
        transaction.commit.assert_not_awaited()
        pool.release.assert_awaited_once_with(conn)

    async def test_converts_driver_errors(self):
        pool, _, transaction = make_pool()

        with pytest.raises(IntegrityError) as exc_info:
            async with database_transaction(pool):
                raise RuntimeError('duplicate key value violates unique constraint "uq_voucher"')

        assert exc_info.value.code == "INTEGRITY_ERROR"
        transaction.rollback.assert_awaited_once()

    async def test_no_pool(self):
        with pytest.raises(ConnectionPoolError):
            async with database_transaction(None):
                pass

    async def test_acquire_failure(self):
        pool, _, _ = make_pool()
        pool.acquire = AsyncMock(side_effect=OSError("refused"))

        with pytest.raises(ConnectionPoolError):
            async with database_transaction(pool):
                pass

    async def test_start_failure(self):
        pool, _, transaction = make_pool()
        transaction.start = AsyncMock(side_effect=RuntimeError("nope"))

        with pytest.raises(TransactionError):
            async with database_transaction(pool):
                pass

        pool.release.assert_awaited_once()


class TestDatabaseConnection:
    async def test_releases_connection(self):
        pool, conn, _ = make_pool()

        async with database_connection(pool) as acquired:
            assert acquired is conn

        pool.release.assert_awaited_once_with(conn)


class TestConvertDbException:
    @pytest.mark.parametrize(
        "message, expected_type, constraint",
        [
            ("duplicate key value", IntegrityError, "unique"),
            ("insert violates foreign key constraint", IntegrityError, "foreign_key"),
            ("null value violates not null constraint", IntegrityError, "not_null"),
        ],
    )
    def test_integrity(self, message, expected_type, constraint):
        converted = _convert_db_exception(RuntimeError(message))

        assert isinstance(converted, expected_type)
        assert converted.details["constraint"] == constraint

    @pytest.mark.parametrize(
        "sqlstate, expected_type, key, value",
        [
            ("23505", IntegrityError, "constraint", "unique"),
            ("23514", IntegrityError, "constraint", "check"),
            ("40P01", TransactionError, "operation", "deadlock"),
            ("55P03", TransactionError, "operation", "lock_timeout"),
        ],
    )
    def test_sqlstate_takes_precedence(self, sqlstate, expected_type, key, value):
        error = RuntimeError("driver error")
        error.sqlstate = sqlstate
        error.constraint_name = "uq_assignments_active_device"

        converted = _convert_db_exception(error)

        assert isinstance(converted, expected_type)
        assert converted.details[key] == value
        assert converted.cause is error

    def test_deadlock_and_timeout(self):
        assert isinstance(_convert_db_exception(RuntimeError("deadlock detected")), TransactionError)
        assert isinstance(_convert_db_exception(RuntimeError("query timed out")), TransactionError)

    def test_other(self):
        converted = _convert_db_exception(RuntimeError("syntax error"))

        assert type(converted) is DatabaseError


class TestHealthAndClose:
    async def test_healthy(self):
        pool, _, _ = make_pool()

        status = await check_database_health(pool)

        assert status == {"healthy": True, "pool_size": 5, "pool_free": 3, "pool_used": 2}

    async def test_no_pool(self):
        status = await check_database_health(None)

        assert status["healthy"] is False

    async def test_query_failure(self):
        pool, conn, _ = make_pool()
        conn.fetchval = AsyncMock(side_effect=RuntimeError("server closed"))

        status = await check_database_health(pool)

        assert status == {"healthy": False, "error": "server closed"}

    async def test_close_terminates_on_error(self):
        pool = MagicMock()
        pool.close = AsyncMock(side_effect=RuntimeError("stuck"))

        await close_pool(pool)

        pool.terminate.assert_called_once()
