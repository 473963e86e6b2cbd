#!/usr/bin/env python3
"""Exception Hierarchy for the Phone Fleet inventory backend.

This module provides a structured exception hierarchy for handling errors
across the sync and assignment workflows, including lifecycle conflicts,
database failures and reconciliation failures.

Design Principles:
    - All exceptions inherit from FleetError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions carry a machine-readable code so operators can tell
      validation, infrastructure and business-rule failures apart
    - Lifecycle exceptions carry the HTTP status they map to

Exception Hierarchy:
    FleetError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── RecordValidationError (per-record, non-fatal)
    ├── LifecycleError (aborts a single operation)
    │   ├── NotFoundError
    │   │   ├── DeviceNotFoundError
    │   │   ├── DistributorNotFoundError
    │   │   └── AssignmentNotFoundError
    │   ├── ConflictError
    │   │   ├── DeviceAlreadyAssignedError
    │   │   ├── DuplicateDeviceError
    │   │   ├── AssignmentNotActiveError
    │   │   ├── InvalidShippingTransitionError
    │   │   ├── ReturnAlreadyReceivedError
    │   │   ├── ReturnBeforeDeliveryError
    │   │   └── AssignmentNotReadyError
    │   └── BusinessRuleError
    │       ├── DeviceDeletedError
    │       ├── DeviceNotUsableError
    │       ├── NoShippingVoucherError
    │       ├── ReturnNotExpectedError
    │       └── InvalidFinalStatusError
    ├── DatabaseError (may be recoverable)
    │   ├── ConnectionPoolError
    │   ├── TransactionError
    │   ├── IntegrityError
    │   └── BulkWriteError
    └── SyncError (run failed)
        ├── EmptySnapshotError
        └── ReconciliationError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class FleetError(Exception):
    """Base exception for all fleet errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "DEVICE_ALREADY_ASSIGNED")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================

class ConfigurationError(FleetError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Record Validation (per-record, non-fatal)
# ============================================

class RecordValidationError(FleetError):
    """Raised by a row parser when a row cannot become a record.

    Parsers catch this per row and turn it into a RecordError, so it never
    escapes a sync run.
    """

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(
            message,
            code="RECORD_VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.field = field


# ============================================
# Lifecycle Errors (abort one operation)
# ============================================

class LifecycleError(FleetError):
    """Base class for assignment/device lifecycle failures.

    Attributes:
        http_status: HTTP status code the API layer responds with
    """

    http_status: int = 400

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


class NotFoundError(LifecycleError):
    """Raised when a referenced resource does not exist."""

    http_status = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} '{resource_id}' not found"

        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = str(resource_id)

        kwargs.setdefault("code", "NOT_FOUND")
        super().__init__(message, details=details, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id


class DeviceNotFoundError(NotFoundError):
    def __init__(self, device_id: Any, **kwargs):
        super().__init__("Device", device_id, code="DEVICE_NOT_FOUND", **kwargs)


class DistributorNotFoundError(NotFoundError):
    def __init__(self, distributor_id: Any, **kwargs):
        super().__init__(
            "Distributor", distributor_id, code="DISTRIBUTOR_NOT_FOUND", **kwargs
        )


class AssignmentNotFoundError(NotFoundError):
    def __init__(self, assignment_id: Any, **kwargs):
        super().__init__(
            "Assignment", assignment_id, code="ASSIGNMENT_NOT_FOUND", **kwargs
        )


class ConflictError(LifecycleError):
    """Raised when the current state forbids the requested operation."""

    http_status = 409

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "CONFLICT")
        super().__init__(message, **kwargs)


class DeviceAlreadyAssignedError(ConflictError):
    """Raised when a device already carries an active assignment."""

    def __init__(
        self,
        device_id: Any,
        active_assignment_id: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["device_id"] = str(device_id)
        if active_assignment_id is not None:
            details["active_assignment_id"] = str(active_assignment_id)
        super().__init__(
            f"Device '{device_id}' already has an active assignment",
            code="DEVICE_ALREADY_ASSIGNED",
            details=details,
            **kwargs,
        )
        self.device_id = device_id
        self.active_assignment_id = active_assignment_id


class DuplicateDeviceError(ConflictError):
    def __init__(self, imei: str, **kwargs):
        super().__init__(
            f"A device with IMEI '{imei}' already exists",
            code="DUPLICATE_DEVICE",
            details={"imei": imei},
            **kwargs,
        )


class AssignmentNotActiveError(ConflictError):
    def __init__(self, assignment_id: Any, status: str, **kwargs):
        super().__init__(
            f"Assignment '{assignment_id}' is not active (status: {status})",
            code="ASSIGNMENT_NOT_ACTIVE",
            details={"assignment_id": str(assignment_id), "status": status},
            **kwargs,
        )


class InvalidShippingTransitionError(ConflictError):
    """Raised when a shipping action does not match the current shipping status."""

    def __init__(
        self,
        current: Optional[str],
        target: str,
        **kwargs,
    ):
        super().__init__(
            f"Cannot move shipping from '{current}' to '{target}'",
            code="INVALID_SHIPPING_TRANSITION",
            details={"current": current, "target": target},
            **kwargs,
        )
        self.current = current
        self.target = target


class ReturnAlreadyReceivedError(ConflictError):
    def __init__(self, assignment_id: Any, **kwargs):
        super().__init__(
            f"Return for assignment '{assignment_id}' was already received",
            code="RETURN_ALREADY_RECEIVED",
            details={"assignment_id": str(assignment_id)},
            **kwargs,
        )


class ReturnBeforeDeliveryError(ConflictError):
    def __init__(self, assignment_id: Any, shipping_status: Optional[str], **kwargs):
        super().__init__(
            "A return can only be confirmed after the shipment was delivered",
            code="RETURN_BEFORE_DELIVERY",
            details={
                "assignment_id": str(assignment_id),
                "shipping_status": shipping_status,
            },
            **kwargs,
        )


class AssignmentNotReadyError(ConflictError):
    def __init__(self, assignment_id: Any, missing: list[str], **kwargs):
        super().__init__(
            f"Assignment '{assignment_id}' is not ready to close",
            code="ASSIGNMENT_NOT_READY",
            details={"assignment_id": str(assignment_id), "missing": missing},
            **kwargs,
        )


class BusinessRuleError(LifecycleError):
    """Raised when a request is invalid for the referenced resource."""

    http_status = 400

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "BUSINESS_RULE_VIOLATION")
        super().__init__(message, **kwargs)


class DeviceDeletedError(BusinessRuleError):
    def __init__(self, device_id: Any, **kwargs):
        super().__init__(
            f"Device '{device_id}' is deleted",
            code="DEVICE_DELETED",
            details={"device_id": str(device_id)},
            **kwargs,
        )


class DeviceNotUsableError(BusinessRuleError):
    def __init__(self, device_id: Any, status: str, **kwargs):
        super().__init__(
            f"Device '{device_id}' left the fleet (status: {status})",
            code="DEVICE_NOT_USABLE",
            details={"device_id": str(device_id), "status": status},
            **kwargs,
        )


class NoShippingVoucherError(BusinessRuleError):
    def __init__(self, assignment_id: Any, **kwargs):
        super().__init__(
            f"Assignment '{assignment_id}' has no shipping voucher",
            code="NO_SHIPPING_VOUCHER",
            details={"assignment_id": str(assignment_id)},
            **kwargs,
        )


class ReturnNotExpectedError(BusinessRuleError):
    def __init__(self, assignment_id: Any, **kwargs):
        super().__init__(
            f"Assignment '{assignment_id}' does not expect a device return",
            code="RETURN_NOT_EXPECTED",
            details={"assignment_id": str(assignment_id)},
            **kwargs,
        )


class InvalidFinalStatusError(BusinessRuleError):
    def __init__(self, status: str, allowed: list[str], **kwargs):
        super().__init__(
            f"'{status}' is not a terminal device status",
            code="INVALID_FINAL_STATUS",
            details={"status": status, "allowed": allowed},
            **kwargs,
        )


# ============================================
# Database Errors
# ============================================

class DatabaseError(FleetError):
    """Base class for database-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool is exhausted or unavailable."""

    def __init__(
        self,
        message: str = "Database connection pool error",
        **kwargs,
    ):
        super().__init__(message, code="CONNECTION_POOL_ERROR", **kwargs)


class TransactionError(DatabaseError):
    """Raised when database transaction fails."""

    def __init__(
        self,
        message: str = "Database transaction failed",
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details=details,
            **kwargs,
        )


class IntegrityError(DatabaseError):
    """Raised when database integrity constraint is violated."""

    def __init__(
        self,
        message: str = "Database integrity error",
        constraint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if constraint:
            details["constraint"] = constraint
        super().__init__(
            message,
            code="INTEGRITY_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class BulkWriteError(DatabaseError):
    """Raised when a bulk upsert statement for one chunk fails.

    The reconciler answers this with the per-record fallback strategy.
    """

    def __init__(
        self,
        message: str = "Bulk write failed",
        kind: Optional[str] = None,
        chunk_size: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if kind:
            details["kind"] = kind
        if chunk_size is not None:
            details["chunk_size"] = chunk_size
        super().__init__(
            message,
            code="BULK_WRITE_ERROR",
            details=details,
            **kwargs,
        )


# ============================================
# Sync Errors
# ============================================

class SyncError(FleetError):
    """Base class for synchronization errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)


class EmptySnapshotError(SyncError):
    """Raised when a sync run has no usable records at all."""

    def __init__(
        self,
        kind: str,
        message: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["kind"] = kind
        super().__init__(
            message or f"No usable {kind} records to sync",
            code="EMPTY_SNAPSHOT",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.kind = kind


class ReconciliationError(SyncError):
    """Raised when a chunk fails on both the bulk path and the fallback path."""

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        chunk_index: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if kind:
            details["kind"] = kind
        if chunk_index is not None:
            details["chunk_index"] = chunk_index
        super().__init__(
            message,
            code="RECONCILIATION_FAILED",
            details=details,
            recoverable=True,
            **kwargs,
        )


# ============================================
# Exports
# ============================================

__all__ = [
    # Base
    "FleetError",
    # Configuration
    "ConfigurationError",
    # Records
    "RecordValidationError",
    # Lifecycle
    "LifecycleError",
    "NotFoundError",
    "DeviceNotFoundError",
    "DistributorNotFoundError",
    "AssignmentNotFoundError",
    "ConflictError",
    "DeviceAlreadyAssignedError",
    "DuplicateDeviceError",
    "AssignmentNotActiveError",
    "InvalidShippingTransitionError",
    "ReturnAlreadyReceivedError",
    "ReturnBeforeDeliveryError",
    "AssignmentNotReadyError",
    "BusinessRuleError",
    "DeviceDeletedError",
    "DeviceNotUsableError",
    "NoShippingVoucherError",
    "ReturnNotExpectedError",
    "InvalidFinalStatusError",
    # Database
    "DatabaseError",
    "ConnectionPoolError",
    "TransactionError",
    "IntegrityError",
    "BulkWriteError",
    # Sync
    "SyncError",
    "EmptySnapshotError",
    "ReconciliationError",
]
