"""FastAPI dependency injection for the assignment API.

Configuration:
- VOUCHER_PREFIX: prefix of generated shipping voucher ids (default "ENV")
- LOCK_TIMEOUT_MS: how long a lifecycle operation waits for a locked
  device or assignment row (default 5000)
"""

import os

from ...api.dependencies import env_int, get_db_pool
from ..adapters.postgres_assignment_repo import PostgresAssignmentRepository
from ..domain.entities import VOUCHER_PREFIX
from ..domain.ports import IAssignmentRepository
from ..use_cases.create_assignment import CreateAssignmentUseCase
from ..use_cases.device_actions import DeviceActionsUseCase
from ..use_cases.queries import GetAssignmentsUseCase
from ..use_cases.transitions import AssignmentTransitionsUseCase
from ..use_cases.update_assignment import UpdateAssignmentUseCase

LOCK_TIMEOUT_MS = 5000


def get_assignment_repo() -> IAssignmentRepository:
    """Get assignment repository instance."""
    return PostgresAssignmentRepository(
        get_db_pool(),
        lock_timeout_ms=env_int("LOCK_TIMEOUT_MS", LOCK_TIMEOUT_MS),
    )


def get_create_assignment_use_case() -> CreateAssignmentUseCase:
    return CreateAssignmentUseCase(
        get_assignment_repo(),
        voucher_prefix=os.getenv("VOUCHER_PREFIX", VOUCHER_PREFIX),
    )


def get_transitions_use_case() -> AssignmentTransitionsUseCase:
    return AssignmentTransitionsUseCase(get_assignment_repo())


def get_update_assignment_use_case() -> UpdateAssignmentUseCase:
    return UpdateAssignmentUseCase(get_assignment_repo())


def get_assignments_query() -> GetAssignmentsUseCase:
    return GetAssignmentsUseCase(get_assignment_repo())


def get_device_actions_use_case() -> DeviceActionsUseCase:
    return DeviceActionsUseCase(get_assignment_repo())
