"""Create Assignment Use Case.

Hands a device to a person. The guards and all writes run in one
transaction with the device row locked, so two concurrent requests for the
same device cannot both pass the single-active-assignment check.

Workflow:
1. Lock the device and check it exists, is not deleted and is usable
2. Check the device carries no active assignment (status and query)
3. Check the referenced distributor exists
4. Insert the assignment (with a voucher when requested)
5. Move the device to ASSIGNED with the assignee's details
6. Insert the shipment when a voucher was generated
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
    DeviceNotUsableError,
    DistributorNotFoundError,
)
from ..domain.entities import (
    VOUCHER_PREFIX,
    Assignment,
    AssignmentOutcome,
    AssignmentStatus,
    AssignmentType,
    DeviceStatus,
    ReturnStatus,
    Shipment,
    ShipmentStatus,
    ShippingStatus,
    generate_voucher_id,
)
from ..domain.ports import IAssignmentRepository

logger = logging.getLogger(__name__)


@dataclass
class CreateAssignmentCommand:
    """Input for creating an assignment."""

    device_id: UUID
    assignee_name: str
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


class CreateAssignmentUseCase:
    """Creates an assignment and flips the device to ASSIGNED atomically.

    Example:
        use_case = CreateAssignmentUseCase(PostgresAssignmentRepository(pool))
        outcome = await use_case.execute(CreateAssignmentCommand(
            device_id=device_id,
            assignee_name="Ana Torres",
            generate_voucher=True,
        ))
    """

    def __init__(self, repo: IAssignmentRepository, voucher_prefix: str = VOUCHER_PREFIX):
        self.repo = repo
        self.voucher_prefix = voucher_prefix

    async def execute(self, command: CreateAssignmentCommand) -> AssignmentOutcome:
        """Create the assignment.

        Raises:
            DeviceNotFoundError: No such device
            DeviceDeletedError: The device is soft-deleted
            DeviceNotUsableError: The device is in a terminal status
            DeviceAlreadyAssignedError: The device already has an active assignment
            DistributorNotFoundError: The referenced distributor does not exist
        """
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            device = await uow.lock_device(command.device_id)
            if device is None:
                raise DeviceNotFoundError(command.device_id)
            if device.is_deleted:
                raise DeviceDeletedError(device.id)
            if device.status.is_terminal:
                raise DeviceNotUsableError(device.id, device.status.value)

            # Status can lag behind the assignments table, so check both
            active = await uow.find_active_assignment(device.id)
            if device.status == DeviceStatus.ASSIGNED or active is not None:
                raise DeviceAlreadyAssignedError(
                    device.id, active.id if active else None
                )

            if command.distributor_id is not None:
                if not await uow.distributor_exists(command.distributor_id):
                    raise DistributorNotFoundError(command.distributor_id)

            voucher_id = None
            if command.generate_voucher:
                voucher_id = generate_voucher_id(self.voucher_prefix, now)

            # Without a voucher there is no delivery to wait for, so an
            # expected return is pending right away
            return_status = None
            if command.expects_return and voucher_id is None:
                return_status = ReturnStatus.PENDING

            assignment = Assignment(
                id=uuid4(),
                device_id=device.id,
                assignee_name=command.assignee_name.strip(),
                type=command.type,
                status=AssignmentStatus.ACTIVE,
                assignee_phone=command.assignee_phone,
                assignee_email=command.assignee_email,
                contact_details=command.contact_details,
                distributor_id=command.distributor_id,
                delivery_location=command.delivery_location,
                expects_return=command.expects_return,
                return_device_imei=command.return_device_imei if command.expects_return else None,
                shipping_voucher_id=voucher_id,
                shipping_status=ShippingStatus.PENDING if voucher_id else None,
                return_status=return_status,
                previous_device_status=device.status,
                ticket=command.ticket,
                created_at=now,
                updated_at=now,
            )
            await uow.insert_assignment(assignment)

            device.status = DeviceStatus.ASSIGNED
            device.assigned_to = assignment.assignee_name
            if command.distributor_id is not None:
                device.distributor_id = command.distributor_id
            device.ticket = command.ticket
            device.updated_at = now
            await uow.save_device(device)

            shipment = None
            if voucher_id:
                shipment = Shipment(
                    id=uuid4(),
                    assignment_id=assignment.id,
                    voucher_id=voucher_id,
                    destination=command.delivery_location,
                    status=ShipmentStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                )
                await uow.insert_shipment(shipment)

        logger.info(
            f"Assignment {assignment.id} created for device {device.imei}"
            + (f" with voucher {voucher_id}" if voucher_id else "")
        )
        return AssignmentOutcome(assignment=assignment, device=device, shipment=shipment)
