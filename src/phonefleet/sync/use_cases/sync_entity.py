"""Shared workflow for the per-kind sync orchestrators.

Workflow:
1. Take the explicit rows, or read the sheet through ISnapshotProvider
2. Parse and validate rows (via IRecordParser); bad rows are counted
3. Resolve catalog references (kind-specific hook)
4. Reconcile the valid records (via BulkReconciler)
5. Return a SyncResult
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from ...api.exceptions import EmptySnapshotError, FleetError
from ..domain.entities import EntityKind, SheetRecord, SyncResult
from ..domain.ports import IRecordParser, ISnapshotProvider
from .reconcile import BulkReconciler

logger = logging.getLogger(__name__)

# Rejected rows echoed back in a response
ERROR_SAMPLE_LIMIT = 50


class SyncEntityUseCase:
    """Orchestrates one sync run for a single entity kind.

    Subclasses set `kind` and override `prepare` when records carry names
    that must be resolved to catalog ids before writing.
    """

    kind: EntityKind

    def __init__(
        self,
        reconciler: BulkReconciler,
        parser: IRecordParser,
        snapshot_provider: Optional[ISnapshotProvider] = None,
    ):
        """Initialize the use case with its dependencies.

        Args:
            reconciler: Converges the kind's table to the valid records
            parser: Turns raw rows into typed records
            snapshot_provider: Source of rows when the caller passes none
        """
        self.reconciler = reconciler
        self.parser = parser
        self.snapshot_provider = snapshot_provider

    async def prepare(self, records: list[SheetRecord], result: SyncResult) -> None:
        """Resolve catalog references in place before reconciliation."""

    async def execute(self, rows: Optional[Sequence[dict[str, Any]]] = None) -> SyncResult:
        """Execute the sync workflow.

        Args:
            rows: Explicit raw rows; when empty or None the snapshot
                provider is consulted

        Returns:
            SyncResult; never raises for bad input or store failures
        """
        started_at = datetime.now(timezone.utc)
        result = SyncResult(kind=self.kind, success=False, started_at=started_at)
        logger.info(f"Starting {self.kind.value} sync at {started_at.isoformat()}")

        try:
            if not rows:
                rows = await self._load_snapshot()

            parsed = self.parser.parse(self.kind, rows)
            result.errors = len(parsed.errors)
            result.error_details = parsed.errors[:ERROR_SAMPLE_LIMIT]

            if not parsed.records:
                raise EmptySnapshotError(
                    self.kind.value,
                    f"No valid {self.kind.value} records in {len(rows)} rows",
                )

            await self.prepare(parsed.records, result)
            outcome = await self.reconciler.reconcile(self.kind, parsed.records)

        except EmptySnapshotError as e:
            logger.warning(f"{self.kind.value} sync aborted: {e.message}")
            result.no_input = True
            result.error = e.message
            result.error_code = e.code
            result.completed_at = datetime.now(timezone.utc)
            return result

        except FleetError as e:
            logger.error(f"{self.kind.value} sync failed: {e}")
            result.fatal = True
            result.error = e.message
            result.error_code = e.code
            result.completed_at = datetime.now(timezone.utc)
            return result

        except Exception as e:
            logger.exception(f"Unexpected error during {self.kind.value} sync")
            result.fatal = True
            result.error = f"Unexpected sync failure: {e}"
            result.error_code = "SYNC_FAILED"
            result.completed_at = datetime.now(timezone.utc)
            return result

        result.processed = outcome.processed
        result.created = outcome.created
        result.updated = outcome.updated
        result.unchanged = outcome.unchanged
        result.deactivated = outcome.deactivated
        result.success = result.errors == 0
        result.completed_at = datetime.now(timezone.utc)

        logger.info(
            f"{self.kind.value} sync complete: {result.processed} processed, "
            f"{result.errors} rejected in {result.duration_seconds:.2f}s"
        )
        return result

    async def _load_snapshot(self) -> list[dict[str, Any]]:
        if self.snapshot_provider is None:
            raise EmptySnapshotError(
                self.kind.value,
                "No records provided and no snapshot source is configured",
            )
        rows = await self.snapshot_provider.fetch_rows(self.kind)
        if not rows:
            raise EmptySnapshotError(
                self.kind.value,
                f"The {self.kind.value} snapshot has no rows",
            )
        logger.info(f"Read {len(rows)} {self.kind.value} rows from snapshot")
        return rows
