"""Adapters layer - infrastructure implementations of the sync ports."""

from .field_mapper import SheetFieldMapper
from .postgres_catalog_repo import (
    PostgresDistributorRepository,
    PostgresPhoneModelRepository,
)
from .postgres_reconcile_repo import PostgresReconcileRepository
from .workbook_snapshot import WorkbookSnapshotProvider

__all__ = [
    "SheetFieldMapper",
    "PostgresDistributorRepository",
    "PostgresPhoneModelRepository",
    "PostgresReconcileRepository",
    "WorkbookSnapshotProvider",
]
