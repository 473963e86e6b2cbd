"""Pydantic schemas for assignment and device API request/response validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..domain.entities import (
    AssignmentStatus,
    AssignmentType,
    DeviceStatus,
    ReturnStatus,
    ShipmentStatus,
    ShippingStatus,
)


# ========== Requests ==========


class CreateAssignmentRequest(BaseModel):
    """Request to hand a device to a person."""

    device_id: UUID
    assignee_name: str = Field(..., min_length=1)
    assignee_phone: Optional[str] = None
    assignee_email: Optional[str] = None
    contact_details: Optional[str] = None
    distributor_id: Optional[UUID] = None
    delivery_location: Optional[str] = None
    type: AssignmentType = AssignmentType.ASSIGN
    expects_return: bool = False
    return_device_imei: Optional[str] = None
    generate_voucher: bool = False
    ticket: Optional[str] = None


class UpdateAssignmentRequest(BaseModel):
    """Partial update; omitted fields are left unchanged and null clears one."""

    assignee_name: Optional[str] = Field(None, min_length=1)
    assignee_phone: Optional[str] = None
    assignee_email: Optional[str] = None
    contact_details: Optional[str] = None
    delivery_location: Optional[str] = None


class TransitionRequest(BaseModel):
    """Optional free text attached to a shipping transition."""

    notes: Optional[str] = None


class ReasonRequest(BaseModel):
    """Optional reason for cancelling or closing an assignment."""

    reason: Optional[str] = None


class ConfirmReturnRequest(BaseModel):
    notes: Optional[str] = None
    return_device_imei: Optional[str] = None


class RegisterDeviceRequest(BaseModel):
    """Request to register a device by hand."""

    imei: str = Field(..., min_length=1)
    model_id: Optional[UUID] = None
    distributor_id: Optional[UUID] = None
    status: DeviceStatus = DeviceStatus.NEW
    is_backup: bool = False


# ========== Responses ==========


class DeviceDTO(BaseModel):
    """Device data transfer object."""

    id: UUID
    imei: str
    status: DeviceStatus
    model_id: Optional[UUID] = None
    distributor_id: Optional[UUID] = None
    assigned_to: Optional[str] = None
    ticket: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deletion_reason: Optional[str] = None
    is_backup: bool = False
    is_usable: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ShipmentDTO(BaseModel):
    id: UUID
    voucher_id: str
    destination: Optional[str] = None
    status: ShipmentStatus
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentDTO(BaseModel):
    """Assignment data transfer object."""

    id: UUID
    device_id: UUID
    assignee_name: str
    type: AssignmentType
    status: AssignmentStatus
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
    ticket: Optional[str] = None
    shipping_notes: Optional[str] = None
    return_notes: Optional[str] = None
    closure_reason: Optional[str] = None
    ready_to_close: bool = False

    # Timestamps
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    return_received_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    """An assignment plus the device (and shipment) state after the operation."""

    assignment: AssignmentDTO
    device: DeviceDTO
    shipment: Optional[ShipmentDTO] = None
    returned_device: Optional[DeviceDTO] = None
    warnings: list[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class AssignmentListResponse(BaseModel):
    items: list[AssignmentDTO]
    count: int
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    """Body of every lifecycle error response."""

    error: str
    code: str
    details: dict = Field(default_factory=dict)
