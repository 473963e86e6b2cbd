"""Device actions - manual registration and soft deletion.

Devices normally arrive through the stock sync. These actions cover
hardware registered by hand and hardware that leaves the fleet. Devices
are never physically removed: deletion sets a flag and, optionally, the
terminal status that says why the device left.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from ...api.exceptions import (
    DeviceAlreadyAssignedError,
    DeviceDeletedError,
    DeviceNotFoundError,
    DistributorNotFoundError,
    DuplicateDeviceError,
    InvalidFinalStatusError,
)
from ..domain.entities import TERMINAL_STATUSES, Device, DeviceStatus
from ..domain.ports import IAssignmentRepository

logger = logging.getLogger(__name__)


@dataclass
class RegisterDeviceCommand:
    imei: str
    model_id: Optional[UUID] = None
    distributor_id: Optional[UUID] = None
    status: DeviceStatus = DeviceStatus.NEW
    is_backup: bool = False


def parse_final_status(value: Optional[str]) -> Optional[DeviceStatus]:
    """Validate a requested final status against the terminal subset.

    Raises:
        InvalidFinalStatusError: If value is not DISPOSED, DONATED or SCRAPPED
    """
    if value is None or value.strip() == "":
        return None
    allowed = sorted(s.value for s in TERMINAL_STATUSES)
    try:
        status = DeviceStatus(value.strip().upper())
    except ValueError:
        raise InvalidFinalStatusError(value, allowed)
    if not status.is_terminal:
        raise InvalidFinalStatusError(status.value, allowed)
    return status


class DeviceActionsUseCase:
    """Registers and soft-deletes devices."""

    def __init__(self, repo: IAssignmentRepository):
        self.repo = repo

    async def register(self, command: RegisterDeviceCommand) -> Device:
        """Register a device by IMEI.

        Raises:
            DuplicateDeviceError: A device with this IMEI already exists
            DistributorNotFoundError: The referenced distributor does not exist
        """
        imei = command.imei.strip()
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            if await uow.lock_device_by_imei(imei) is not None:
                raise DuplicateDeviceError(imei)
            if command.distributor_id is not None:
                if not await uow.distributor_exists(command.distributor_id):
                    raise DistributorNotFoundError(command.distributor_id)

            device = Device(
                id=uuid4(),
                imei=imei,
                status=command.status,
                model_id=command.model_id,
                distributor_id=command.distributor_id,
                is_backup=command.is_backup,
                created_at=now,
                updated_at=now,
            )
            await uow.insert_device(device)

        logger.info(f"Registered device {imei}")
        return device

    async def soft_delete(
        self,
        device_id: UUID,
        reason: Optional[str] = None,
        final_status: Optional[str] = None,
    ) -> Device:
        """Flag a device as deleted, optionally moving it to a terminal status.

        Raises:
            InvalidFinalStatusError: final_status is not a terminal status
            DeviceNotFoundError: No such device
            DeviceDeletedError: The device is already deleted
            DeviceAlreadyAssignedError: The device has an active assignment
        """
        status = parse_final_status(final_status)
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            device = await uow.lock_device(device_id)
            if device is None:
                raise DeviceNotFoundError(device_id)
            if device.is_deleted:
                raise DeviceDeletedError(device_id)

            active = await uow.find_active_assignment(device.id)
            if active is not None:
                raise DeviceAlreadyAssignedError(device.id, active.id)

            device.is_deleted = True
            device.deleted_at = now
            device.deletion_reason = reason
            if status is not None:
                device.status = status
            device.updated_at = now
            await uow.save_device(device)

        logger.info(
            f"Soft-deleted device {device.imei}"
            + (f" as {status.value}" if status else "")
        )
        return device
