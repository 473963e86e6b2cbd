"""Read-side use cases for assignments."""

from typing import Optional
from uuid import UUID

from ...api.exceptions import AssignmentNotFoundError
from ..domain.entities import Assignment, AssignmentStatus
from ..domain.ports import IAssignmentRepository


class GetAssignmentsUseCase:
    """Lookup by id and filtered listing."""

    def __init__(self, repo: IAssignmentRepository):
        self.repo = repo

    async def get(self, assignment_id: UUID) -> Assignment:
        assignment = await self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment

    async def list_assignments(
        self,
        device_id: Optional[UUID] = None,
        status: Optional[AssignmentStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Assignment]:
        return await self.repo.list_assignments(
            device_id=device_id, status=status, limit=limit, offset=offset
        )
