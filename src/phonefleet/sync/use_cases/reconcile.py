"""Bulk Reconciler - converges one table to an incoming record set.

Workflow:
1. De-duplicate incoming records by natural key (last occurrence wins)
2. Snapshot the persisted rows to classify created/updated/unchanged
3. Upsert chunk by chunk with one bulk statement per chunk
4. On a failed chunk, retry it once with the per-record fallback
5. Deactivate every row whose key is absent from the incoming set

The created/updated counts come from the snapshot taken in step 2. They are
telemetry: a concurrent writer between the snapshot and the upsert can
skew them, but never the table state.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator, Sequence, TypeVar

from ...api.exceptions import EmptySnapshotError, ReconciliationError
from ..domain.entities import EntityKind, ReconcileResult, SheetRecord
from ..domain.ports import IReconcileRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Rows per bulk statement; the adapter lowers it further when
# rows x columns would pass the driver's bind-parameter ceiling.
UPSERT_CHUNK_SIZE = 1000

# Above this many incoming keys the deactivation pass switches from
# "NOT IN (...)" to deactivate-all-then-reactivate.
NOT_IN_THRESHOLD = 10000

REACTIVATE_CHUNK_SIZE = 5000

# Bound on concurrent single-row writes in the fallback path
FALLBACK_CONCURRENCY = 20


def chunk(items: list[T], size: int) -> Iterator[list[T]]:
    """Split a list into chunks of specified size."""
    for i in range(0, len(items), size):
        yield items[i : i + size]


async def process_concurrent(
    items: Sequence[T],
    processor: Callable[[T], Awaitable[Any]],
    max_concurrent: int = FALLBACK_CONCURRENCY,
) -> list[Any]:
    """Run processor over items with at most max_concurrent in flight.

    The first failure propagates once every task has settled.
    """
    semaphore = asyncio.Semaphore(max_concurrent)

    async def bounded_processor(item: T) -> Any:
        async with semaphore:
            return await processor(item)

    outcomes = await asyncio.gather(
        *(bounded_processor(item) for item in items),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return outcomes


def dedupe_by_key(records: Sequence[SheetRecord]) -> dict[str, SheetRecord]:
    """Index records by natural key; a later duplicate replaces an earlier one."""
    unique: dict[str, SheetRecord] = {}
    for record in records:
        unique.pop(record.natural_key, None)
        unique[record.natural_key] = record
    return unique


class BulkReconciler:
    """Converges a persisted table to a full incoming snapshot.

    Example:
        reconciler = BulkReconciler(PostgresReconcileRepository(pool))
        result = await reconciler.reconcile(EntityKind.SIM, records)
    """

    def __init__(
        self,
        repo: IReconcileRepository,
        chunk_size: int = UPSERT_CHUNK_SIZE,
        not_in_threshold: int = NOT_IN_THRESHOLD,
        reactivate_chunk_size: int = REACTIVATE_CHUNK_SIZE,
        fallback_concurrency: int = FALLBACK_CONCURRENCY,
    ):
        self.repo = repo
        self.chunk_size = chunk_size
        self.not_in_threshold = not_in_threshold
        self.reactivate_chunk_size = reactivate_chunk_size
        self.fallback_concurrency = fallback_concurrency

    async def reconcile(
        self,
        kind: EntityKind,
        records: Sequence[SheetRecord],
    ) -> ReconcileResult:
        """Upsert every record and deactivate rows missing from records.

        Raises:
            EmptySnapshotError: If records is empty; deactivating the whole
                table on an empty snapshot is never intended
            ReconciliationError: If a chunk fails on both write paths
        """
        unique = dedupe_by_key(records)
        if not unique:
            raise EmptySnapshotError(kind.value)

        synced_at = datetime.now(timezone.utc)
        result = ReconcileResult(processed=len(unique))

        existing = await self.repo.snapshot(kind)
        held = await self.repo.held_keys(kind)
        for key, record in unique.items():
            stored = existing.get(key)
            if stored is None:
                result.created += 1
                continue
            # Held rows keep their lifecycle columns, so only the rest can change
            incoming = (
                record.values_keeping_lifecycle(stored) if key in held
                else record.values()
            )
            if stored == incoming + (True,):
                result.unchanged += 1
            else:
                result.updated += 1

        size = max(1, min(self.chunk_size, self.repo.max_rows_per_statement(kind)))
        for index, batch in enumerate(chunk(list(unique.values()), size)):
            try:
                await self.repo.bulk_upsert(kind, batch, synced_at)
            except Exception as e:
                logger.warning(
                    f"Bulk upsert of {kind.value} chunk {index} "
                    f"({len(batch)} rows) failed, using per-record fallback: {e}"
                )
                result.fallback_chunks += 1
                try:
                    await self._write_fallback(kind, batch, synced_at)
                except Exception as fallback_error:
                    raise ReconciliationError(
                        f"Chunk {index} of {kind.value} failed on both write paths: "
                        f"{fallback_error}",
                        kind=kind.value,
                        chunk_index=index,
                        cause=fallback_error,
                    )

        keys = list(unique.keys())
        if len(keys) <= self.not_in_threshold:
            result.deactivated = await self.repo.deactivate_missing(kind, keys)
            result.deactivation_strategy = "not_in"
        else:
            previously_active = await self.repo.replace_active_set(
                kind, keys, self.reactivate_chunk_size
            )
            result.deactivated = max(0, previously_active - len(keys))
            result.deactivation_strategy = "invert"

        logger.info(
            f"Reconciled {result.processed} {kind.value} records: "
            f"{result.created} created, {result.updated} updated, "
            f"{result.unchanged} unchanged, {result.deactivated} deactivated "
            f"({result.deactivation_strategy})"
        )
        return result

    async def _write_fallback(
        self,
        kind: EntityKind,
        batch: list[SheetRecord],
        synced_at: datetime,
    ) -> None:
        """Slow path: insert unseen keys in one batch, update the rest one by one."""
        existing_keys = await self.repo.fetch_existing_keys(
            kind, [r.natural_key for r in batch]
        )
        to_insert = [r for r in batch if r.natural_key not in existing_keys]
        to_update = [r for r in batch if r.natural_key in existing_keys]

        if to_insert:
            await self.repo.insert_many(kind, to_insert, synced_at)

        async def update(record: SheetRecord) -> None:
            await self.repo.update_one(kind, record, synced_at)

        await process_concurrent(to_update, update, self.fallback_concurrency)
