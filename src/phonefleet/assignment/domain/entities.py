"""Domain entities for the assignment lifecycle.

These are pure domain objects with no infrastructure dependencies.
They represent devices, the assignments that hand them to field staff,
and the shipments that carry them.
"""

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID


class DeviceStatus(str, Enum):
    """Inventory status of a physical device."""

    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    USED = "USED"
    REPAIRED = "REPAIRED"
    NOT_REPAIRED = "NOT_REPAIRED"
    DISPOSED = "DISPOSED"  # Left the fleet: discarded
    DONATED = "DONATED"  # Left the fleet: given away
    SCRAPPED = "SCRAPPED"  # Left the fleet: destroyed
    LOST = "LOST"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Statuses that mean the device left the fleet. The reason is kept, but
# every downstream check treats them alike.
TERMINAL_STATUSES = frozenset({
    DeviceStatus.DISPOSED,
    DeviceStatus.DONATED,
    DeviceStatus.SCRAPPED,
})


class AssignmentType(str, Enum):
    """Why the device is handed out."""

    ASSIGN = "ASSIGN"  # First device for the assignee
    REPLACE = "REPLACE"  # Replaces a device the assignee already has


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ShippingStatus(str, Enum):
    """Outbound shipping sub-state; only used when a voucher exists."""

    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class ReturnStatus(str, Enum):
    """Return sub-state; only used when a return is expected."""

    PENDING = "pending"
    RECEIVED = "received"


class ShipmentStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


VOUCHER_PREFIX = "ENV"
_VOUCHER_ALPHABET = string.digits + string.ascii_uppercase


def generate_voucher_id(
    prefix: str = VOUCHER_PREFIX,
    now: Optional[datetime] = None,
) -> str:
    """Build an opaque voucher id: {prefix}-{yyyymmdd}-{5 base36 chars}.

    The suffix comes from `secrets`, so ids need no counter or sequence.
    """
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(_VOUCHER_ALPHABET) for _ in range(5))
    return f"{prefix}-{now.strftime('%Y%m%d')}-{suffix}"


@dataclass
class Device:
    """A physical unit of hardware, keyed by IMEI."""

    id: UUID
    imei: str
    status: DeviceStatus = DeviceStatus.NEW
    model_id: Optional[UUID] = None
    distributor_id: Optional[UUID] = None
    assigned_to: Optional[str] = None
    ticket: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deletion_reason: Optional[str] = None
    is_backup: bool = False
    backup_distributor_id: Optional[UUID] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_usable(self) -> bool:
        """Not deleted and still part of the fleet."""
        return not self.is_deleted and not self.status.is_terminal


@dataclass
class Assignment:
    """One grant of a device to a person for one in-service period.

    `shipping_status` is None unless a voucher was generated, and
    `return_status` is None unless a return is expected.
    """

    id: UUID
    device_id: UUID
    assignee_name: str
    type: AssignmentType = AssignmentType.ASSIGN
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    assignee_phone: Optional[str] = None
    assignee_email: Optional[str] = None
    contact_details: Optional[str] = None
    distributor_id: Optional[UUID] = None
    delivery_location: Optional[str] = None
    expects_return: bool = False
    return_device_imei: Optional[str] = None
    shipping_voucher_id: Optional[str] = None
    shipping_status: Optional[ShippingStatus] = None
    return_status: Optional[ReturnStatus] = None
    previous_device_status: Optional[DeviceStatus] = None
    ticket: Optional[str] = None
    shipping_notes: Optional[str] = None
    return_notes: Optional[str] = None
    closure_reason: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    return_received_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == AssignmentStatus.ACTIVE

    @property
    def has_voucher(self) -> bool:
        return self.shipping_voucher_id is not None

    def missing_for_close(self) -> list[str]:
        """What still has to happen before the assignment can be closed."""
        missing = []
        if self.has_voucher and self.shipping_status != ShippingStatus.DELIVERED:
            missing.append("delivery")
        if self.expects_return and self.return_status != ReturnStatus.RECEIVED:
            missing.append("return")
        return missing

    @property
    def ready_to_close(self) -> bool:
        return self.is_active and not self.missing_for_close()


@dataclass
class Shipment:
    """Outbound shipment created alongside an assignment with a voucher."""

    id: UUID
    assignment_id: UUID
    voucher_id: str
    destination: Optional[str] = None
    status: ShipmentStatus = ShipmentStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class AssignmentOutcome:
    """An assignment together with the device state it left behind."""

    assignment: Assignment
    device: Device
    shipment: Optional[Shipment] = None
    returned_device: Optional[Device] = None
    warnings: list[str] = field(default_factory=list)
