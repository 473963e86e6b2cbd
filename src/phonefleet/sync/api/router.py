"""FastAPI router for the sync endpoints.

One endpoint per entity kind. Each accepts optional explicit rows; with
none, the configured spreadsheet snapshot is read. All four answer with
the SyncResponse shape and a status that reflects the outcome:
200 clean, 207 some rows rejected, 400 no usable input, 500 fatal.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...api.error_sanitizer import sanitize_error_message
from ..domain.entities import SyncResult
from ..use_cases.sync_enrolled import SyncEnrolledDevicesUseCase
from ..use_cases.sync_entity import SyncEntityUseCase
from ..use_cases.sync_sims import SyncSimsUseCase
from ..use_cases.sync_stock import SyncStockUseCase
from ..use_cases.sync_tickets import SyncTicketsUseCase
from .dependencies import (
    get_sync_enrolled_use_case,
    get_sync_sims_use_case,
    get_sync_stock_use_case,
    get_sync_tickets_use_case,
)
from .schemas import SyncRequest, SyncResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["Sync"])

_RESPONSES = {
    207: {"model": SyncResponse, "description": "Some rows were rejected"},
    400: {"model": SyncResponse, "description": "No usable input"},
    500: {"model": SyncResponse, "description": "Sync failed"},
}


def _to_response(result: SyncResult) -> JSONResponse:
    payload = result.to_dict()
    if result.fatal and "error" in payload:
        logger.error(f"{result.kind.value} sync returned fatal error [{result.error_code}]")
        payload["error"] = sanitize_error_message(payload["error"])
    return JSONResponse(content=payload, status_code=result.http_status)


async def _run(use_case: SyncEntityUseCase, body: Optional[SyncRequest]) -> JSONResponse:
    rows = body.rows if body else []
    result = await use_case.execute(rows)
    return _to_response(result)


@router.post("/sims", response_model=SyncResponse, responses=_RESPONSES)
async def sync_sims(
    body: Optional[SyncRequest] = None,
    use_case: SyncSimsUseCase = Depends(get_sync_sims_use_case),
):
    """Reconcile SIM cards (natural key: ICC)."""
    return await _run(use_case, body)


@router.post("/stock", response_model=SyncResponse, responses=_RESPONSES)
async def sync_stock(
    body: Optional[SyncRequest] = None,
    use_case: SyncStockUseCase = Depends(get_sync_stock_use_case),
):
    """Reconcile stock devices (natural key: IMEI)."""
    return await _run(use_case, body)


@router.post("/enrolled", response_model=SyncResponse, responses=_RESPONSES)
async def sync_enrolled(
    body: Optional[SyncRequest] = None,
    use_case: SyncEnrolledDevicesUseCase = Depends(get_sync_enrolled_use_case),
):
    """Reconcile monitoring-agent enrollments (natural key: IMEI)."""
    return await _run(use_case, body)


@router.post("/tickets", response_model=SyncResponse, responses=_RESPONSES)
async def sync_tickets(
    body: Optional[SyncRequest] = None,
    use_case: SyncTicketsUseCase = Depends(get_sync_tickets_use_case),
):
    """Reconcile support tickets (natural key: ticket key)."""
    return await _run(use_case, body)
