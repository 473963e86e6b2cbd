"""Sync module - reconciles local tables against the inventory spreadsheet.

Architecture:
    domain/     - Record types, results and port interfaces
    use_cases/  - Reconciler, catalog resolvers and per-kind orchestrators
    adapters/   - Field mapper, PostgreSQL repositories, workbook reader
    api/        - FastAPI router for the sync endpoints
"""

from .domain.entities import (
    EnrolledDeviceRecord,
    EntityKind,
    NetworkProvider,
    ReconcileResult,
    RecordError,
    SimRecord,
    StockRecord,
    SyncResult,
    TicketRecord,
)
from .domain.ports import (
    IDistributorRepository,
    IPhoneModelRepository,
    IReconcileRepository,
    IRecordParser,
    ISnapshotProvider,
)

__all__ = [
    # Entities
    "EnrolledDeviceRecord",
    "EntityKind",
    "NetworkProvider",
    "ReconcileResult",
    "RecordError",
    "SimRecord",
    "StockRecord",
    "SyncResult",
    "TicketRecord",
    # Ports
    "IDistributorRepository",
    "IPhoneModelRepository",
    "IReconcileRepository",
    "IRecordParser",
    "ISnapshotProvider",
]
