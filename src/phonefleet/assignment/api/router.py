"""FastAPI routers for the assignment lifecycle and device actions.

Lifecycle errors raised by the use cases are not caught here; the app's
exception handler maps them to {"error", "code", "details"} with the
status each error class carries.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..domain.entities import AssignmentOutcome, AssignmentStatus
from ..use_cases.create_assignment import CreateAssignmentCommand, CreateAssignmentUseCase
from ..use_cases.device_actions import DeviceActionsUseCase, RegisterDeviceCommand
from ..use_cases.queries import GetAssignmentsUseCase
from ..use_cases.transitions import AssignmentTransitionsUseCase
from ..use_cases.update_assignment import AssignmentPatch, UpdateAssignmentUseCase
from .dependencies import (
    get_assignments_query,
    get_create_assignment_use_case,
    get_device_actions_use_case,
    get_transitions_use_case,
    get_update_assignment_use_case,
)
from .schemas import (
    AssignmentDTO,
    AssignmentListResponse,
    AssignmentResponse,
    ConfirmReturnRequest,
    CreateAssignmentRequest,
    DeviceDTO,
    ErrorResponse,
    ReasonRequest,
    RegisterDeviceRequest,
    TransitionRequest,
    UpdateAssignmentRequest,
)

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}

router = APIRouter(prefix="/api/assignments", tags=["Assignments"], responses=_ERRORS)
devices_router = APIRouter(prefix="/api/devices", tags=["Devices"], responses=_ERRORS)


def _to_response(outcome: AssignmentOutcome) -> AssignmentResponse:
    return AssignmentResponse.model_validate(outcome)


# ========== Assignments ==========


@router.post("", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    body: CreateAssignmentRequest,
    use_case: CreateAssignmentUseCase = Depends(get_create_assignment_use_case),
):
    """Assign a device to a person.

    With `generate_voucher` a shipping voucher and shipment are created and
    the shipping status starts at pending.
    """
    outcome = await use_case.execute(CreateAssignmentCommand(**body.model_dump()))
    return _to_response(outcome)


@router.get("", response_model=AssignmentListResponse)
async def list_assignments(
    device_id: Optional[UUID] = Query(None),
    status: Optional[AssignmentStatus] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    query: GetAssignmentsUseCase = Depends(get_assignments_query),
):
    """List assignments, newest first, filtered by device and/or status."""
    assignments = await query.list_assignments(
        device_id=device_id, status=status, limit=limit, offset=offset
    )
    return AssignmentListResponse(
        items=[AssignmentDTO.model_validate(a) for a in assignments],
        count=len(assignments),
        limit=limit,
        offset=offset,
    )


@router.get("/{assignment_id}", response_model=AssignmentDTO)
async def get_assignment(
    assignment_id: UUID,
    query: GetAssignmentsUseCase = Depends(get_assignments_query),
):
    assignment = await query.get(assignment_id)
    return AssignmentDTO.model_validate(assignment)


@router.patch("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: UUID,
    body: UpdateAssignmentRequest,
    use_case: UpdateAssignmentUseCase = Depends(get_update_assignment_use_case),
):
    """Patch assignee and delivery fields. Lifecycle fields are not patchable."""
    patch = AssignmentPatch(**body.model_dump(exclude_unset=True))
    outcome = await use_case.execute(assignment_id, patch)
    return _to_response(outcome)


@router.post("/{assignment_id}/cancel", response_model=AssignmentResponse)
async def cancel_assignment(
    assignment_id: UUID,
    body: Optional[ReasonRequest] = None,
    use_case: AssignmentTransitionsUseCase = Depends(get_transitions_use_case),
):
    """Cancel an active assignment and restore the device's previous status."""
    reason = body.reason if body else None
    return _to_response(await use_case.cancel(assignment_id, reason))


@router.post("/{assignment_id}/shipping/start", response_model=AssignmentResponse)
async def start_shipping(
    assignment_id: UUID,
    body: Optional[TransitionRequest] = None,
    use_case: AssignmentTransitionsUseCase = Depends(get_transitions_use_case),
):
    notes = body.notes if body else None
    return _to_response(await use_case.start_shipping(assignment_id, notes))


@router.post("/{assignment_id}/shipping/deliver", response_model=AssignmentResponse)
async def mark_delivered(
    assignment_id: UUID,
    body: Optional[TransitionRequest] = None,
    use_case: AssignmentTransitionsUseCase = Depends(get_transitions_use_case),
):
    notes = body.notes if body else None
    return _to_response(await use_case.mark_delivered(assignment_id, notes))


@router.post("/{assignment_id}/return", response_model=AssignmentResponse)
async def confirm_return(
    assignment_id: UUID,
    body: Optional[ConfirmReturnRequest] = None,
    use_case: AssignmentTransitionsUseCase = Depends(get_transitions_use_case),
):
    """Confirm the expected device came back.

    When a voucher exists this is only allowed after delivery.
    """
    body = body or ConfirmReturnRequest()
    outcome = await use_case.confirm_return(
        assignment_id, notes=body.notes, return_device_imei=body.return_device_imei
    )
    return _to_response(outcome)


@router.post("/{assignment_id}/close", response_model=AssignmentResponse)
async def close_assignment(
    assignment_id: UUID,
    body: Optional[ReasonRequest] = None,
    use_case: AssignmentTransitionsUseCase = Depends(get_transitions_use_case),
):
    """Complete an assignment whose delivery and return are done."""
    reason = body.reason if body else None
    return _to_response(await use_case.close(assignment_id, reason))


# ========== Devices ==========


@devices_router.post("", response_model=DeviceDTO, status_code=201)
async def register_device(
    body: RegisterDeviceRequest,
    use_case: DeviceActionsUseCase = Depends(get_device_actions_use_case),
):
    """Register a device by IMEI."""
    device = await use_case.register(RegisterDeviceCommand(**body.model_dump()))
    return DeviceDTO.model_validate(device)


@devices_router.delete("/{device_id}", response_model=DeviceDTO)
async def delete_device(
    device_id: UUID,
    reason: Optional[str] = Query(None),
    final_status: Optional[str] = Query(None, description="DISPOSED, DONATED or SCRAPPED"),
    use_case: DeviceActionsUseCase = Depends(get_device_actions_use_case),
):
    """Soft-delete a device. Refused while the device has an active assignment."""
    device = await use_case.soft_delete(device_id, reason=reason, final_status=final_status)
    return DeviceDTO.model_validate(device)
