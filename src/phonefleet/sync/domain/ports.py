"""Port interfaces for sync operations.

Ports define the contracts between the domain/use cases and the infrastructure.
These are abstract base classes that adapters must implement.

Following the Hexagonal Architecture (Ports and Adapters) pattern:
- Ports are interfaces defined in the domain layer
- Adapters implement these ports in the adapters layer
- Use cases depend only on ports, not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

from .entities import EntityKind, ParseResult, SheetRecord


class ISnapshotProvider(ABC):
    """Port for reading the external spreadsheet snapshot.

    The provider knows nothing about record types: it only hands out rows
    of untyped text cells keyed by their header.
    """

    @abstractmethod
    async def fetch_rows(self, kind: EntityKind) -> list[dict[str, Any]]:
        """Fetch every data row of the sheet that backs an entity kind.

        Args:
            kind: Which sheet to read

        Returns:
            List of {header: cell} dictionaries, in sheet order
        """
        ...


class IRecordParser(ABC):
    """Port for turning raw rows into validated records."""

    @abstractmethod
    def parse(self, kind: EntityKind, rows: Sequence[dict[str, Any]]) -> ParseResult:
        """Parse and validate a batch of raw rows.

        Must not raise for individual bad rows; those end up in
        ParseResult.errors.

        Args:
            kind: Entity kind of the rows
            rows: Raw {header: cell} dictionaries

        Returns:
            ParseResult with typed records and per-row rejections
        """
        ...


class IReconcileRepository(ABC):
    """Port for the persistence side of reconciliation.

    Every method operates on the table that backs one entity kind. Records
    are written by natural key; sheet-owned columns are listed by the
    record type's SHEET_COLUMNS.
    """

    @abstractmethod
    def max_rows_per_statement(self, kind: EntityKind) -> int:
        """Largest chunk a single bulk statement can carry for this kind."""
        ...

    @abstractmethod
    async def snapshot(self, kind: EntityKind) -> dict[str, tuple[Any, ...]]:
        """Read the persisted rows before writing.

        Returns:
            Mapping of natural key -> stored SHEET_COLUMNS values followed
            by the is_active flag
        """
        ...

    @abstractmethod
    async def held_keys(self, kind: EntityKind) -> set[str]:
        """Keys whose LIFECYCLE_COLUMNS a sync must not overwrite.

        For stock devices these are soft-deleted devices and devices with an
        active assignment. Kinds without lifecycle columns return an empty set.
        """
        ...

    @abstractmethod
    async def bulk_upsert(
        self,
        kind: EntityKind,
        records: Sequence[SheetRecord],
        synced_at: datetime,
    ) -> None:
        """Insert or update a chunk with one statement in one transaction.

        On key collision every sheet-owned column is overwritten, except
        LIFECYCLE_COLUMNS on held rows. The row is reactivated and
        last_sync/updated_at are set to synced_at.

        Raises:
            BulkWriteError: If the statement fails; nothing is written
        """
        ...

    @abstractmethod
    async def fetch_existing_keys(
        self,
        kind: EntityKind,
        keys: Sequence[str],
    ) -> set[str]:
        """Return the subset of keys that already have a row."""
        ...

    @abstractmethod
    async def insert_many(
        self,
        kind: EntityKind,
        records: Sequence[SheetRecord],
        synced_at: datetime,
    ) -> None:
        """Insert records whose keys are known to be new."""
        ...

    @abstractmethod
    async def update_one(
        self,
        kind: EntityKind,
        record: SheetRecord,
        synced_at: datetime,
    ) -> None:
        """Overwrite the sheet-owned columns of one existing row, as bulk_upsert does."""
        ...

    @abstractmethod
    async def deactivate_missing(
        self,
        kind: EntityKind,
        keys: Sequence[str],
    ) -> int:
        """Mark active rows whose key is not in keys as inactive.

        Returns:
            Number of rows deactivated
        """
        ...

    @abstractmethod
    async def replace_active_set(
        self,
        kind: EntityKind,
        keys: Sequence[str],
        chunk_size: int,
    ) -> int:
        """Make exactly keys active, for key sets too large for NOT IN.

        In one transaction: mark every active row inactive, then reactivate
        keys in chunks of chunk_size.

        Returns:
            Number of rows that were active before the pass
        """
        ...


class IDistributorRepository(ABC):
    """Port for distributor lookups and creation."""

    @abstractmethod
    async def list_all(self) -> list[tuple[str, str]]:
        """Return every distributor as (id, name)."""
        ...

    @abstractmethod
    async def create(self, name: str) -> str:
        """Create a distributor (or return the existing one) and return its id.

        Names are unique case-insensitively, so a concurrent creation of the
        same name yields the same id.
        """
        ...


class IPhoneModelRepository(ABC):
    """Port for phone model lookups and creation."""

    @abstractmethod
    async def list_all(self) -> list[tuple[str, str, str]]:
        """Return every phone model as (id, brand, model)."""
        ...

    @abstractmethod
    async def create(self, brand: str, model: str) -> str:
        """Create a phone model (or return the existing one) and return its id."""
        ...
