"""Pydantic schemas for the sync API."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    """Optional explicit rows for a sync run.

    Rows may be sent under `records` or under the kind-specific names older
    clients use (`sims`, `devices`, `tickets`). An empty body makes the
    server read the configured snapshot instead.
    """

    records: Optional[list[dict[str, Any]]] = None
    sims: Optional[list[dict[str, Any]]] = None
    devices: Optional[list[dict[str, Any]]] = None
    tickets: Optional[list[dict[str, Any]]] = None

    @property
    def rows(self) -> list[dict[str, Any]]:
        for candidate in (self.records, self.sims, self.devices, self.tickets):
            if candidate:
                return candidate
        return []


class RecordErrorDTO(BaseModel):
    """A rejected row."""

    record: dict[str, Any]
    error: str


class SyncErrorDetailsDTO(BaseModel):
    errors: list[RecordErrorDTO] = Field(default_factory=list)


class SyncResponse(BaseModel):
    """Response shared by every sync endpoint."""

    success: bool
    processed: int
    created: int
    updated: int
    unchanged: int
    deactivated: int
    errors: int
    created_distributors: Optional[int] = Field(None, alias="createdDistributors")
    created_models: Optional[int] = Field(None, alias="createdModels")
    error: Optional[str] = None
    details: Optional[SyncErrorDetailsDTO] = None

    class Config:
        populate_by_name = True
