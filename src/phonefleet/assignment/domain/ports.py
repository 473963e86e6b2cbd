"""Port interfaces for the assignment lifecycle.

Every lifecycle operation reads and writes through one
IAssignmentUnitOfWork, obtained from IAssignmentRepository.transaction().
All writes made through a unit of work commit together or not at all, and
the lock_* methods hold their rows until the transaction ends.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Optional
from uuid import UUID

from .entities import (
    Assignment,
    AssignmentStatus,
    Device,
    Shipment,
    ShipmentStatus,
)


class IAssignmentUnitOfWork(ABC):
    """Reads and writes inside one transaction."""

    @abstractmethod
    async def lock_device(self, device_id: UUID) -> Optional[Device]:
        """Fetch a device and lock its row (SELECT ... FOR UPDATE)."""
        ...

    @abstractmethod
    async def lock_device_by_imei(self, imei: str) -> Optional[Device]:
        """Fetch a device by IMEI and lock its row."""
        ...

    @abstractmethod
    async def lock_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        """Fetch an assignment and lock its row."""
        ...

    @abstractmethod
    async def find_active_assignment(self, device_id: UUID) -> Optional[Assignment]:
        """Return the device's active assignment, if any."""
        ...

    @abstractmethod
    async def distributor_exists(self, distributor_id: UUID) -> bool:
        ...

    @abstractmethod
    async def insert_device(self, device: Device) -> None:
        ...

    @abstractmethod
    async def save_device(self, device: Device) -> None:
        """Persist the mutable fields of an existing device."""
        ...

    @abstractmethod
    async def insert_assignment(self, assignment: Assignment) -> None:
        ...

    @abstractmethod
    async def save_assignment(self, assignment: Assignment) -> None:
        """Persist the mutable fields of an existing assignment."""
        ...

    @abstractmethod
    async def insert_shipment(self, shipment: Shipment) -> None:
        ...

    @abstractmethod
    async def update_shipment_status(
        self,
        assignment_id: UUID,
        status: ShipmentStatus,
        at: datetime,
    ) -> Optional[Shipment]:
        """Move the assignment's shipment to status; None if it has none."""
        ...


class IAssignmentRepository(ABC):
    """Port for assignment persistence.

    Example:
        async with repo.transaction() as uow:
            device = await uow.lock_device(device_id)
            ...
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[IAssignmentUnitOfWork]:
        """Open a transaction; commit on clean exit, roll back on exception."""
        ...

    @abstractmethod
    async def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        ...

    @abstractmethod
    async def list_assignments(
        self,
        device_id: Optional[UUID] = None,
        status: Optional[AssignmentStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Assignment]:
        """List assignments, newest first, optionally filtered."""
        ...
