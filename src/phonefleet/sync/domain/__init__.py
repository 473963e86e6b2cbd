"""Domain layer - sheet record types, sync results and port interfaces.

No infrastructure dependencies allowed in this layer.
"""

from .entities import (
    RECORD_TYPES,
    EnrolledDeviceRecord,
    EntityKind,
    InventoryStatus,
    NetworkProvider,
    ParseResult,
    ReconcileResult,
    RecordError,
    SheetRecord,
    SimRecord,
    StockRecord,
    SyncResult,
    TicketRecord,
)
from .ports import (
    IDistributorRepository,
    IPhoneModelRepository,
    IReconcileRepository,
    IRecordParser,
    ISnapshotProvider,
)

__all__ = [
    "RECORD_TYPES",
    "EnrolledDeviceRecord",
    "EntityKind",
    "InventoryStatus",
    "NetworkProvider",
    "ParseResult",
    "ReconcileResult",
    "RecordError",
    "SheetRecord",
    "SimRecord",
    "StockRecord",
    "SyncResult",
    "TicketRecord",
    "IDistributorRepository",
    "IPhoneModelRepository",
    "IReconcileRepository",
    "IRecordParser",
    "ISnapshotProvider",
]
