"""Domain layer - devices, assignments, shipments and port interfaces.

No infrastructure dependencies allowed in this layer.
"""

from .entities import (
    TERMINAL_STATUSES,
    Assignment,
    AssignmentOutcome,
    AssignmentStatus,
    AssignmentType,
    Device,
    DeviceStatus,
    ReturnStatus,
    Shipment,
    ShipmentStatus,
    ShippingStatus,
    generate_voucher_id,
)
from .ports import IAssignmentRepository, IAssignmentUnitOfWork

__all__ = [
    "TERMINAL_STATUSES",
    "Assignment",
    "AssignmentOutcome",
    "AssignmentStatus",
    "AssignmentType",
    "Device",
    "DeviceStatus",
    "ReturnStatus",
    "Shipment",
    "ShipmentStatus",
    "ShippingStatus",
    "generate_voucher_id",
    "IAssignmentRepository",
    "IAssignmentUnitOfWork",
]
