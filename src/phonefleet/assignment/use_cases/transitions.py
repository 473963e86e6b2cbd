"""Assignment transitions: cancel, shipping, return and closure.

Each transition is an explicit operator action with its own guards. Every
method locks the assignment row, checks its guards, and writes the
assignment, the device and the shipment in one transaction.

Shipping:  pending -> shipped -> delivered   (only with a voucher)
Return:    pending -> received               (only when a return is expected)
Closure:   active -> completed               (once delivery and return are done)
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from ...api.exceptions import (
    AssignmentNotActiveError,
    AssignmentNotFoundError,
    AssignmentNotReadyError,
    DeviceAlreadyAssignedError,
    DeviceNotFoundError,
    InvalidShippingTransitionError,
    NoShippingVoucherError,
    ReturnAlreadyReceivedError,
    ReturnBeforeDeliveryError,
    ReturnNotExpectedError,
)
from ..domain.entities import (
    Assignment,
    AssignmentOutcome,
    AssignmentStatus,
    Device,
    DeviceStatus,
    ReturnStatus,
    ShipmentStatus,
    ShippingStatus,
)
from ..domain.ports import IAssignmentRepository, IAssignmentUnitOfWork

logger = logging.getLogger(__name__)


async def _lock_active(uow: IAssignmentUnitOfWork, assignment_id: UUID) -> Assignment:
    assignment = await uow.lock_assignment(assignment_id)
    if assignment is None:
        raise AssignmentNotFoundError(assignment_id)
    if not assignment.is_active:
        raise AssignmentNotActiveError(assignment_id, assignment.status.value)
    return assignment


async def _lock_device(uow: IAssignmentUnitOfWork, assignment: Assignment) -> Device:
    device = await uow.lock_device(assignment.device_id)
    if device is None:
        raise DeviceNotFoundError(assignment.device_id)
    return device


class AssignmentTransitionsUseCase:
    """Drives an active assignment through its lifecycle.

    Example:
        transitions = AssignmentTransitionsUseCase(PostgresAssignmentRepository(pool))
        await transitions.start_shipping(assignment_id)
        await transitions.mark_delivered(assignment_id)
        await transitions.close(assignment_id, reason="Delivered and returned")
    """

    def __init__(self, repo: IAssignmentRepository):
        self.repo = repo

    async def cancel(
        self,
        assignment_id: UUID,
        reason: Optional[str] = None,
    ) -> AssignmentOutcome:
        """Cancel an active assignment and put the device back in stock.

        The device returns to the status it had before the assignment
        (NEW when unknown) with assignee and ticket cleared.
        """
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            assignment = await _lock_active(uow, assignment_id)
            device = await _lock_device(uow, assignment)

            current = await uow.find_active_assignment(device.id)
            if current is not None and current.id != assignment.id:
                raise DeviceAlreadyAssignedError(device.id, current.id)

            assignment.status = AssignmentStatus.CANCELLED
            assignment.cancelled_at = now
            assignment.closure_reason = reason
            assignment.updated_at = now
            await uow.save_assignment(assignment)

            restored = assignment.previous_device_status
            if restored is None or restored == DeviceStatus.ASSIGNED:
                restored = DeviceStatus.NEW
            device.status = restored
            device.assigned_to = None
            device.ticket = None
            device.updated_at = now
            await uow.save_device(device)

            shipment = None
            if assignment.has_voucher:
                shipment = await uow.update_shipment_status(
                    assignment.id, ShipmentStatus.CANCELLED, now
                )

        logger.info(
            f"Assignment {assignment.id} cancelled; device {device.imei} "
            f"back to {device.status.value}"
        )
        return AssignmentOutcome(assignment=assignment, device=device, shipment=shipment)

    async def start_shipping(
        self,
        assignment_id: UUID,
        notes: Optional[str] = None,
    ) -> AssignmentOutcome:
        """Move shipping from pending (or unset) to shipped."""
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            assignment = await _lock_active(uow, assignment_id)
            if not assignment.has_voucher:
                raise NoShippingVoucherError(assignment.id)
            if assignment.shipping_status not in (None, ShippingStatus.PENDING):
                raise InvalidShippingTransitionError(
                    assignment.shipping_status.value, ShippingStatus.SHIPPED.value
                )

            assignment.shipping_status = ShippingStatus.SHIPPED
            assignment.shipped_at = now
            if notes:
                assignment.shipping_notes = notes
            assignment.updated_at = now
            await uow.save_assignment(assignment)

            shipment = await uow.update_shipment_status(
                assignment.id, ShipmentStatus.SHIPPED, now
            )
            device = await _lock_device(uow, assignment)

        logger.info(f"Assignment {assignment.id} shipped ({assignment.shipping_voucher_id})")
        return AssignmentOutcome(assignment=assignment, device=device, shipment=shipment)

    async def mark_delivered(
        self,
        assignment_id: UUID,
        notes: Optional[str] = None,
    ) -> AssignmentOutcome:
        """Move shipping from shipped to delivered.

        When a return is expected it becomes pending here.
        """
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            assignment = await _lock_active(uow, assignment_id)
            if not assignment.has_voucher:
                raise NoShippingVoucherError(assignment.id)
            if assignment.shipping_status != ShippingStatus.SHIPPED:
                current = assignment.shipping_status
                raise InvalidShippingTransitionError(
                    current.value if current else None,
                    ShippingStatus.DELIVERED.value,
                )

            assignment.shipping_status = ShippingStatus.DELIVERED
            assignment.delivered_at = now
            if notes:
                assignment.shipping_notes = notes
            if assignment.expects_return and assignment.return_status is None:
                assignment.return_status = ReturnStatus.PENDING
            assignment.updated_at = now
            await uow.save_assignment(assignment)

            shipment = await uow.update_shipment_status(
                assignment.id, ShipmentStatus.DELIVERED, now
            )
            device = await _lock_device(uow, assignment)

        logger.info(f"Assignment {assignment.id} delivered")
        return AssignmentOutcome(assignment=assignment, device=device, shipment=shipment)

    async def confirm_return(
        self,
        assignment_id: UUID,
        notes: Optional[str] = None,
        return_device_imei: Optional[str] = None,
    ) -> AssignmentOutcome:
        """Record that the expected device came back.

        The assignment's device moves to USED so it is never left ASSIGNED.
        The returned device, when it is a different device in inventory,
        also moves to USED with its assignee cleared, and its own active
        assignment, if any, is completed. That puts it back in the pool for a
        future assignment.
        """
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            assignment = await _lock_active(uow, assignment_id)
            if not assignment.expects_return:
                raise ReturnNotExpectedError(assignment.id)
            if assignment.return_status == ReturnStatus.RECEIVED:
                raise ReturnAlreadyReceivedError(assignment.id)
            if (
                assignment.has_voucher
                and assignment.shipping_status != ShippingStatus.DELIVERED
            ):
                current = assignment.shipping_status
                raise ReturnBeforeDeliveryError(
                    assignment.id, current.value if current else None
                )

            if return_device_imei:
                assignment.return_device_imei = return_device_imei.strip()
            assignment.return_status = ReturnStatus.RECEIVED
            assignment.return_received_at = now
            if notes:
                assignment.return_notes = notes
            assignment.updated_at = now
            await uow.save_assignment(assignment)

            device = await _lock_device(uow, assignment)
            device.status = DeviceStatus.USED
            device.updated_at = now
            await uow.save_device(device)

            returned_device = None
            warnings: list[str] = []
            if assignment.return_device_imei:
                returned_device = await uow.lock_device_by_imei(assignment.return_device_imei)
                if returned_device is None:
                    warnings.append(
                        f"Returned device {assignment.return_device_imei} is not in inventory"
                    )
                elif returned_device.id != device.id:
                    returned_device.status = DeviceStatus.USED
                    returned_device.assigned_to = None
                    returned_device.updated_at = now
                    await uow.save_device(returned_device)

                    replaced = await uow.find_active_assignment(returned_device.id)
                    if replaced is not None:
                        replaced.status = AssignmentStatus.COMPLETED
                        replaced.closed_at = now
                        replaced.closure_reason = f"Replaced by assignment {assignment.id}"
                        replaced.updated_at = now
                        await uow.save_assignment(replaced)
                        logger.info(
                            f"Assignment {replaced.id} completed: device "
                            f"{returned_device.imei} was returned"
                        )
                else:
                    returned_device = None

        for warning in warnings:
            logger.warning(warning)
        logger.info(f"Return received for assignment {assignment.id}")
        return AssignmentOutcome(
            assignment=assignment,
            device=device,
            returned_device=returned_device,
            warnings=warnings,
        )

    async def close(
        self,
        assignment_id: UUID,
        reason: Optional[str] = None,
    ) -> AssignmentOutcome:
        """Complete an assignment whose delivery and return are done."""
        now = datetime.now(timezone.utc)

        async with self.repo.transaction() as uow:
            assignment = await _lock_active(uow, assignment_id)
            missing = assignment.missing_for_close()
            if missing:
                raise AssignmentNotReadyError(assignment.id, missing)

            assignment.status = AssignmentStatus.COMPLETED
            assignment.closed_at = now
            assignment.closure_reason = reason
            assignment.updated_at = now
            await uow.save_assignment(assignment)

            device = await _lock_device(uow, assignment)
            device.status = DeviceStatus.USED
            device.assigned_to = None
            device.ticket = None
            device.updated_at = now
            await uow.save_device(device)

        logger.info(f"Assignment {assignment.id} closed")
        return AssignmentOutcome(assignment=assignment, device=device)
