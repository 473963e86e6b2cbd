"""Use cases for the assignment lifecycle."""

from .create_assignment import CreateAssignmentCommand, CreateAssignmentUseCase
from .device_actions import DeviceActionsUseCase, RegisterDeviceCommand
from .queries import GetAssignmentsUseCase
from .transitions import AssignmentTransitionsUseCase
from .update_assignment import AssignmentPatch, UpdateAssignmentUseCase

__all__ = [
    "CreateAssignmentCommand",
    "CreateAssignmentUseCase",
    "DeviceActionsUseCase",
    "RegisterDeviceCommand",
    "GetAssignmentsUseCase",
    "AssignmentTransitionsUseCase",
    "AssignmentPatch",
    "UpdateAssignmentUseCase",
]
