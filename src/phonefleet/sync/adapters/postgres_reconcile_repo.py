"""PostgreSQL repository adapter for reconciliation.

This adapter implements IReconcileRepository for the four sheet-backed
tables. SQL is generated from a small per-kind table description so that
the bulk upsert, the fallback writes and the snapshot read always agree on
which columns the sheet owns.

Bulk upserts send one multi-row INSERT ... ON CONFLICT per chunk. PostgreSQL
accepts at most 32767 bind parameters per statement, which caps the rows
per chunk at (32767 - 1) // columns.

Stock devices that are soft-deleted or carry an active assignment are
"held": a sync still refreshes their catalog columns but leaves status,
assignee and ticket to the assignment lifecycle.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ...api.database import database_connection, database_transaction
from ...api.exceptions import BulkWriteError
from ..domain.entities import RECORD_TYPES, EntityKind, SheetRecord
from ..domain.ports import IReconcileRepository

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)

MAX_BIND_PARAMETERS = 32767


@dataclass(frozen=True)
class TableSpec:
    """Where one entity kind lives and how its sheet-owned columns are typed."""

    table: str
    key: str
    columns: tuple[str, ...]
    column_types: dict[str, str]
    lifecycle_columns: tuple[str, ...] = ()
    # SQL predicate over the table row; true when lifecycle_columns are held
    held_when: Optional[str] = None

    def pg_type(self, column: str) -> str:
        return self.column_types.get(column, "text")

    @property
    def width(self) -> int:
        return len(self.columns) + 1

    def set_item(self, column: str, incoming: str) -> str:
        """SET item for one sheet-owned column; held rows keep lifecycle columns."""
        target = _quote(column)
        if self.held_when and column in self.lifecycle_columns:
            return (
                f"{target} = CASE WHEN {self.held_when} "
                f"THEN {self.table}.{target} ELSE {incoming} END"
            )
        return f"{target} = {incoming}"


def _spec(
    kind: EntityKind,
    table: str,
    held_when: Optional[str] = None,
    **column_types: str,
) -> TableSpec:
    record_type = RECORD_TYPES[kind]
    return TableSpec(
        table=table,
        key=record_type.KEY_COLUMN,
        columns=record_type.SHEET_COLUMNS,
        column_types=column_types,
        lifecycle_columns=record_type.LIFECYCLE_COLUMNS,
        held_when=held_when,
    )


# Soft-deleted devices and devices with an active assignment
DEVICE_HELD = """(
    devices.is_deleted
    OR EXISTS (
        SELECT 1 FROM assignments a
        WHERE a.device_id = devices.id AND a.status = 'active'
    )
)"""


TABLES: dict[EntityKind, TableSpec] = {
    EntityKind.SIM: _spec(EntityKind.SIM, "sims", distributor_id="uuid"),
    EntityKind.STOCK: _spec(
        EntityKind.STOCK,
        "devices",
        held_when=DEVICE_HELD,
        model_id="uuid",
        distributor_id="uuid",
    ),
    EntityKind.ENROLLED: _spec(EntityKind.ENROLLED, "enrolled_devices"),
    EntityKind.TICKET: _spec(
        EntityKind.TICKET,
        "tickets",
        created="timestamptz",
        updated="timestamptz",
        replacement_count="integer",
        pending_count="integer",
        is_replacement="boolean",
        is_assignment="boolean",
    ),
}


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg command status such as "UPDATE 42"."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class PostgresReconcileRepository(IReconcileRepository):
    """PostgreSQL implementation of IReconcileRepository.

    Every write method runs in its own transaction, so a failed chunk
    leaves nothing behind for the fallback path to trip over.
    """

    def __init__(self, pool: "asyncpg.Pool"):
        """Initialize the repository.

        Args:
            pool: asyncpg connection pool for database operations
        """
        self.pool = pool

    def max_rows_per_statement(self, kind: EntityKind) -> int:
        # One parameter is shared by every row (synced_at)
        return (MAX_BIND_PARAMETERS - 1) // TABLES[kind].width

    async def snapshot(self, kind: EntityKind) -> dict[str, tuple[Any, ...]]:
        spec = TABLES[kind]
        select = ", ".join(
            f"{_quote(c)}::text" if spec.pg_type(c) == "uuid" else _quote(c)
            for c in spec.columns
        )
        query = (
            f"SELECT {_quote(spec.key)}, {select}, is_active FROM {spec.table}"
        )
        async with database_connection(self.pool) as conn:
            rows = await conn.fetch(query)
        return {row[0]: tuple(row[1:]) for row in rows}

    async def held_keys(self, kind: EntityKind) -> set[str]:
        spec = TABLES[kind]
        if not spec.held_when:
            return set()
        async with database_connection(self.pool) as conn:
            rows = await conn.fetch(
                f"SELECT {_quote(spec.key)} FROM {spec.table} WHERE {spec.held_when}"
            )
        return {row[0] for row in rows}

    async def bulk_upsert(
        self,
        kind: EntityKind,
        records: Sequence[SheetRecord],
        synced_at: datetime,
    ) -> None:
        if not records:
            return
        spec = TABLES[kind]
        all_columns = (spec.key,) + spec.columns

        values_sql = []
        args: list[Any] = [synced_at]
        for row_index, record in enumerate(records):
            base = 2 + row_index * spec.width
            placeholders = ", ".join(
                f"${base + i}::{spec.pg_type(column)}"
                for i, column in enumerate(all_columns)
            )
            values_sql.append(f"({placeholders}, true, $1, $1)")
            args.append(record.natural_key)
            args.extend(record.values())

        assignments = ", ".join(
            spec.set_item(c, f"EXCLUDED.{_quote(c)}") for c in spec.columns
        )
        query = f"""
            INSERT INTO {spec.table} (
                {", ".join(_quote(c) for c in all_columns)},
                is_active, last_sync, updated_at
            ) VALUES {", ".join(values_sql)}
            ON CONFLICT ({_quote(spec.key)}) DO UPDATE SET
                {assignments},
                is_active = true,
                last_sync = EXCLUDED.last_sync,
                updated_at = EXCLUDED.updated_at
        """

        try:
            async with database_transaction(self.pool) as conn:
                await conn.execute(query, *args)
        except Exception as e:
            raise BulkWriteError(
                f"Bulk upsert into {spec.table} failed: {e}",
                kind=kind.value,
                chunk_size=len(records),
                cause=e,
            )

    async def fetch_existing_keys(
        self,
        kind: EntityKind,
        keys: Sequence[str],
    ) -> set[str]:
        spec = TABLES[kind]
        async with database_connection(self.pool) as conn:
            rows = await conn.fetch(
                f"SELECT {_quote(spec.key)} FROM {spec.table} "
                f"WHERE {_quote(spec.key)} = ANY($1::text[])",
                list(keys),
            )
        return {row[0] for row in rows}

    async def insert_many(
        self,
        kind: EntityKind,
        records: Sequence[SheetRecord],
        synced_at: datetime,
    ) -> None:
        if not records:
            return
        spec = TABLES[kind]
        all_columns = (spec.key,) + spec.columns
        placeholders = ", ".join(
            f"${i + 1}::{spec.pg_type(c)}" for i, c in enumerate(all_columns)
        )
        synced_param = len(all_columns) + 1
        query = f"""
            INSERT INTO {spec.table} (
                {", ".join(_quote(c) for c in all_columns)},
                is_active, last_sync, updated_at
            ) VALUES ({placeholders}, true, ${synced_param}, ${synced_param})
        """
        async with database_transaction(self.pool) as conn:
            await conn.executemany(
                query,
                [(r.natural_key, *r.values(), synced_at) for r in records],
            )

    async def update_one(
        self,
        kind: EntityKind,
        record: SheetRecord,
        synced_at: datetime,
    ) -> None:
        spec = TABLES[kind]
        assignments = ", ".join(
            spec.set_item(c, f"${i + 2}::{spec.pg_type(c)}")
            for i, c in enumerate(spec.columns)
        )
        synced_param = len(spec.columns) + 2
        query = f"""
            UPDATE {spec.table} SET
                {assignments},
                is_active = true,
                last_sync = ${synced_param},
                updated_at = ${synced_param}
            WHERE {_quote(spec.key)} = $1
        """
        async with database_connection(self.pool) as conn:
            await conn.execute(query, record.natural_key, *record.values(), synced_at)

    async def deactivate_missing(
        self,
        kind: EntityKind,
        keys: Sequence[str],
    ) -> int:
        spec = TABLES[kind]
        async with database_transaction(self.pool) as conn:
            status = await conn.execute(
                f"""
                UPDATE {spec.table}
                SET is_active = false, updated_at = NOW()
                WHERE is_active AND NOT ({_quote(spec.key)} = ANY($1::text[]))
                """,
                list(keys),
            )
        return _affected_rows(status)

    async def replace_active_set(
        self,
        kind: EntityKind,
        keys: Sequence[str],
        chunk_size: int,
    ) -> int:
        spec = TABLES[kind]
        keys = list(keys)
        async with database_transaction(self.pool) as conn:
            status = await conn.execute(
                f"UPDATE {spec.table} SET is_active = false WHERE is_active"
            )
            previously_active = _affected_rows(status)

            for start in range(0, len(keys), chunk_size):
                await conn.execute(
                    f"UPDATE {spec.table} SET is_active = true "
                    f"WHERE {_quote(spec.key)} = ANY($1::text[])",
                    keys[start : start + chunk_size],
                )

        logger.debug(
            f"Replaced active set of {spec.table}: "
            f"{previously_active} previously active, {len(keys)} incoming"
        )
        return previously_active
