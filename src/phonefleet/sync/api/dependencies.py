"""FastAPI dependency injection for the sync API.

Each request gets fresh use case objects wired to the shared pool. The
field mapper is process-wide because its header-resolution cache is safe
to share; distributor and model caches are created per run by the use
cases themselves.

Configuration:
- SNAPSHOT_WORKBOOK: path of the spreadsheet export read when a request
  carries no rows (optional)
- UPSERT_CHUNK_SIZE / NOT_IN_THRESHOLD / REACTIVATE_CHUNK_SIZE: reconciler
  tunables
"""

import os
from typing import Optional

from ...api.dependencies import env_int, get_db_pool
from ..adapters.field_mapper import SheetFieldMapper
from ..adapters.postgres_catalog_repo import (
    PostgresDistributorRepository,
    PostgresPhoneModelRepository,
)
from ..adapters.postgres_reconcile_repo import PostgresReconcileRepository
from ..adapters.workbook_snapshot import WorkbookSnapshotProvider
from ..domain.ports import ISnapshotProvider
from ..use_cases.reconcile import (
    NOT_IN_THRESHOLD,
    REACTIVATE_CHUNK_SIZE,
    UPSERT_CHUNK_SIZE,
    BulkReconciler,
)
from ..use_cases.sync_enrolled import SyncEnrolledDevicesUseCase
from ..use_cases.sync_sims import SyncSimsUseCase
from ..use_cases.sync_stock import SyncStockUseCase
from ..use_cases.sync_tickets import SyncTicketsUseCase

_field_mapper = SheetFieldMapper()


def get_field_mapper() -> SheetFieldMapper:
    return _field_mapper


def get_snapshot_provider() -> Optional[ISnapshotProvider]:
    """Workbook provider when SNAPSHOT_WORKBOOK is set, else None."""
    path = os.getenv("SNAPSHOT_WORKBOOK")
    if not path:
        return None
    return WorkbookSnapshotProvider(path)


def get_reconciler() -> BulkReconciler:
    return BulkReconciler(
        PostgresReconcileRepository(get_db_pool()),
        chunk_size=env_int("UPSERT_CHUNK_SIZE", UPSERT_CHUNK_SIZE),
        not_in_threshold=env_int("NOT_IN_THRESHOLD", NOT_IN_THRESHOLD),
        reactivate_chunk_size=env_int("REACTIVATE_CHUNK_SIZE", REACTIVATE_CHUNK_SIZE),
    )


def get_sync_sims_use_case() -> SyncSimsUseCase:
    return SyncSimsUseCase(
        reconciler=get_reconciler(),
        parser=get_field_mapper(),
        distributor_repo=PostgresDistributorRepository(get_db_pool()),
        snapshot_provider=get_snapshot_provider(),
    )


def get_sync_stock_use_case() -> SyncStockUseCase:
    pool = get_db_pool()
    return SyncStockUseCase(
        reconciler=get_reconciler(),
        parser=get_field_mapper(),
        distributor_repo=PostgresDistributorRepository(pool),
        model_repo=PostgresPhoneModelRepository(pool),
        snapshot_provider=get_snapshot_provider(),
    )


def get_sync_enrolled_use_case() -> SyncEnrolledDevicesUseCase:
    return SyncEnrolledDevicesUseCase(
        reconciler=get_reconciler(),
        parser=get_field_mapper(),
        snapshot_provider=get_snapshot_provider(),
    )


def get_sync_tickets_use_case() -> SyncTicketsUseCase:
    return SyncTicketsUseCase(
        reconciler=get_reconciler(),
        parser=get_field_mapper(),
        snapshot_provider=get_snapshot_provider(),
    )
