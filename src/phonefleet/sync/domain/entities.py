"""Domain entities for sync operations.

These are pure data structures with no infrastructure dependencies.
They represent the records ingested from the external spreadsheet snapshot
and the summaries produced by a sync run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional


class EntityKind(str, Enum):
    """The four kinds of records reconciled against the spreadsheet."""

    SIM = "sim"
    STOCK = "stock"
    ENROLLED = "enrolled"
    TICKET = "ticket"


class NetworkProvider(str, Enum):
    """Closed set of carriers a SIM can belong to."""

    CLARO = "CLARO"
    MOVISTAR = "MOVISTAR"


class InventoryStatus(str, Enum):
    """Inventory status as derived from a stock sheet row."""

    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    USED = "USED"
    NOT_REPAIRED = "NOT_REPAIRED"


@dataclass
class RecordError:
    """A rejected row: a small summary of the row plus the reason."""

    record: dict[str, Any]
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"record": self.record, "error": self.reason}


class SheetRecord:
    """Mixin for records that are reconciled by natural key.

    KEY_COLUMN names the natural key column and SHEET_COLUMNS the non-key
    columns owned by the spreadsheet, in table order. Every upsert
    overwrites exactly these columns, except LIFECYCLE_COLUMNS on rows the
    repository reports as held: those keep their stored values.
    """

    KEY_COLUMN: ClassVar[str]
    SHEET_COLUMNS: ClassVar[tuple[str, ...]]
    LIFECYCLE_COLUMNS: ClassVar[tuple[str, ...]] = ()

    @property
    def natural_key(self) -> str:
        return getattr(self, self.KEY_COLUMN)

    def values_keeping_lifecycle(self, stored: tuple[Any, ...]) -> tuple[Any, ...]:
        """values() with LIFECYCLE_COLUMNS taken from a stored row."""
        return tuple(
            stored[i] if column in self.LIFECYCLE_COLUMNS else value
            for i, (column, value) in enumerate(zip(self.SHEET_COLUMNS, self.values()))
        )

    def values(self) -> tuple[Any, ...]:
        """Sheet-owned column values in SHEET_COLUMNS order."""
        row = []
        for column in self.SHEET_COLUMNS:
            value = getattr(self, column)
            if isinstance(value, Enum):
                value = value.value
            row.append(value)
        return tuple(row)


@dataclass
class SimRecord(SheetRecord):
    """A validated SIM row.

    `distributor_name` comes from the "Empresa" composite cell and is
    resolved into `distributor_id` by the orchestrator before writing.
    """

    KEY_COLUMN: ClassVar[str] = "icc"
    SHEET_COLUMNS: ClassVar[tuple[str, ...]] = (
        "provider", "distributor_id", "status", "ip",
    )

    icc: str
    provider: NetworkProvider
    distributor_name: str
    status: str = "Inventario"
    ip: Optional[str] = None
    distributor_id: Optional[str] = None


@dataclass
class StockRecord(SheetRecord):
    """A validated stock (procured hardware) row.

    Brand/model and distributor names are resolved into `model_id` and
    `distributor_id` before writing; only the ids land on the device row.
    """

    KEY_COLUMN: ClassVar[str] = "imei"
    SHEET_COLUMNS: ClassVar[tuple[str, ...]] = (
        "model_id", "distributor_id", "assigned_to", "ticket", "status",
    )
    # Owned by the assignment lifecycle once a device is assigned or deleted
    LIFECYCLE_COLUMNS: ClassVar[tuple[str, ...]] = ("assigned_to", "ticket", "status")

    imei: str
    brand: str = "Unknown"
    model: str = "Unknown"
    distributor_name: Optional[str] = None
    assigned_to: Optional[str] = None
    ticket: Optional[str] = None
    status: InventoryStatus = InventoryStatus.NEW
    model_id: Optional[str] = None
    distributor_id: Optional[str] = None


@dataclass
class EnrolledDeviceRecord(SheetRecord):
    """A validated row from the monitoring-agent (SOTI) enrollment sheet."""

    KEY_COLUMN: ClassVar[str] = "imei"
    SHEET_COLUMNS: ClassVar[tuple[str, ...]] = (
        "device_name", "assigned_user", "model", "route",
        "registration_time", "enrollment_time", "connection_date",
        "disconnection_date", "phone", "bssid_network", "ssid_network",
        "jira_ticket_id", "custom_phone", "custom_email",
        "android_enterprise_email", "location",
    )

    imei: str
    device_name: str
    assigned_user: Optional[str] = None
    model: Optional[str] = None
    route: Optional[str] = None
    registration_time: Optional[str] = None
    enrollment_time: Optional[str] = None
    connection_date: Optional[str] = None
    disconnection_date: Optional[str] = None
    phone: Optional[str] = None
    bssid_network: Optional[str] = None
    ssid_network: Optional[str] = None
    jira_ticket_id: Optional[str] = None
    custom_phone: Optional[str] = None
    custom_email: Optional[str] = None
    android_enterprise_email: Optional[str] = None
    location: Optional[str] = None


@dataclass
class TicketRecord(SheetRecord):
    """A validated support ticket row with its derived classification."""

    KEY_COLUMN: ClassVar[str] = "key"
    SHEET_COLUMNS: ClassVar[tuple[str, ...]] = (
        "title", "issue_type", "label", "enterprise", "created", "updated",
        "creator", "status", "category_status", "replacement_count",
        "pending_count", "is_replacement", "is_assignment",
    )

    key: str
    title: str
    issue_type: str = ""
    label: str = ""
    enterprise: str = ""
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    creator: str = "Unknown"
    status: str = "Unknown"
    category_status: str = "Unknown"
    replacement_count: Optional[int] = None
    pending_count: Optional[int] = None
    is_replacement: bool = False
    is_assignment: bool = False


RECORD_TYPES: dict[EntityKind, type[SheetRecord]] = {
    EntityKind.SIM: SimRecord,
    EntityKind.STOCK: StockRecord,
    EntityKind.ENROLLED: EnrolledDeviceRecord,
    EntityKind.TICKET: TicketRecord,
}


@dataclass
class ParseResult:
    """Outcome of parsing one batch of raw rows."""

    records: list[Any] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records) + len(self.errors)


@dataclass
class ReconcileResult:
    """Counts produced by one reconciliation of an entity kind."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    fallback_chunks: int = 0
    deactivation_strategy: str = "not_in"


@dataclass
class SyncResult:
    """Result of a sync run for one entity kind.

    Contains statistics about the run and a capped sample of rejected rows.
    """

    kind: EntityKind
    success: bool
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    errors: int = 0
    created_distributors: Optional[int] = None
    created_models: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    fatal: bool = False
    no_input: bool = False
    error_details: list[RecordError] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate sync duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def http_status(self) -> int:
        """HTTP status the sync endpoints answer with."""
        if self.no_input:
            return 400
        if self.fatal:
            return 500
        if self.errors > 0:
            return 207
        return 200

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape shared by every sync endpoint."""
        payload: dict[str, Any] = {
            "success": self.success,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "deactivated": self.deactivated,
            "errors": self.errors,
        }
        if self.created_distributors is not None:
            payload["createdDistributors"] = self.created_distributors
        if self.created_models is not None:
            payload["createdModels"] = self.created_models
        if self.error:
            payload["error"] = self.error
        if self.error_details:
            payload["details"] = {
                "errors": [e.to_dict() for e in self.error_details],
            }
        return payload
