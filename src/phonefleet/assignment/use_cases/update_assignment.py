"""Update Assignment Use Case - partial patch of contact fields.

Lifecycle fields (status, shipping, return) are not patchable here; they
only move through the explicit transitions.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from ...api.exceptions import AssignmentNotFoundError
from ..domain.entities import AssignmentOutcome
from ..domain.ports import IAssignmentRepository

logger = logging.getLogger(__name__)


# Default for fields the caller did not send; None clears the field
UNSET: Any = object()


@dataclass
class AssignmentPatch:
    """Fields to change; UNSET means "leave as is" and None clears the field.

    The assignee name is required, so a None there is ignored.
    """

    assignee_name: Optional[str] = UNSET
    assignee_phone: Optional[str] = UNSET
    assignee_email: Optional[str] = UNSET
    contact_details: Optional[str] = UNSET
    delivery_location: Optional[str] = UNSET

    def changes(self) -> dict[str, Optional[str]]:
        changes = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }
        if changes.get("assignee_name", "") is None:
            del changes["assignee_name"]
        return changes


class UpdateAssignmentUseCase:
    def __init__(self, repo: IAssignmentRepository):
        self.repo = repo

    async def execute(self, assignment_id: UUID, patch: AssignmentPatch) -> AssignmentOutcome:
        """Apply patch; a new assignee name on an active assignment also
        renames the device's assigned-to in the same transaction.
        """
        now = datetime.now(timezone.utc)
        changes = patch.changes()

        async with self.repo.transaction() as uow:
            assignment = await uow.lock_assignment(assignment_id)
            if assignment is None:
                raise AssignmentNotFoundError(assignment_id)

            renamed = (
                "assignee_name" in changes
                and changes["assignee_name"].strip() != assignment.assignee_name
            )
            for name, value in changes.items():
                setattr(assignment, name, value.strip() if name == "assignee_name" else value)

            device = await uow.lock_device(assignment.device_id)

            if changes:
                assignment.updated_at = now
                await uow.save_assignment(assignment)

            if renamed and assignment.is_active and device is not None:
                device.assigned_to = assignment.assignee_name
                device.updated_at = now
                await uow.save_device(device)

        if changes:
            logger.info(
                f"Assignment {assignment.id} updated: {', '.join(sorted(changes))}"
            )
        return AssignmentOutcome(assignment=assignment, device=device)
