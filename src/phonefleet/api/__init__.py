"""Shared infrastructure for the Phone Fleet backend.

Modules:
    database: asyncpg transaction/connection context managers and pool helpers
    exceptions: FleetError hierarchy shared by the sync and assignment packages
"""
from .database import (
    check_database_health,
    close_pool,
    create_pool,
    database_connection,
    database_transaction,
)
from .exceptions import (
    BulkWriteError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    EmptySnapshotError,
    FleetError,
    LifecycleError,
    NotFoundError,
    ReconciliationError,
    RecordValidationError,
    SyncError,
)

__all__ = [
    # Database
    "check_database_health",
    "close_pool",
    "create_pool",
    "database_connection",
    "database_transaction",
    # Exceptions
    "BulkWriteError",
    "ConfigurationError",
    "ConflictError",
    "DatabaseError",
    "EmptySnapshotError",
    "FleetError",
    "LifecycleError",
    "NotFoundError",
    "ReconciliationError",
    "RecordValidationError",
    "SyncError",
]
