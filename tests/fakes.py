"""In-memory implementations of the ports, shared by the test modules.

Each fake keeps its rows in plain dictionaries so tests can seed state and
assert on it directly.
"""

import copy
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

from src.phonefleet.api.exceptions import BulkWriteError
from src.phonefleet.assignment.domain.entities import (
    Assignment,
    AssignmentStatus,
    Device,
    Shipment,
    ShipmentStatus,
)
from src.phonefleet.assignment.domain.ports import (
    IAssignmentRepository,
    IAssignmentUnitOfWork,
)
from src.phonefleet.sync.domain.entities import EntityKind, SheetRecord
from src.phonefleet.sync.domain.ports import (
    IDistributorRepository,
    IPhoneModelRepository,
    IReconcileRepository,
    ISnapshotProvider,
)


# ============================================
# Sync fakes
# ============================================

class InMemoryReconcileRepository(IReconcileRepository):
    """Reconcile repository over {kind: {key: {"values", "is_active", "last_sync"}}}.

    Args:
        fail_bulk: Make every bulk_upsert raise, forcing the fallback path
        fail_fallback: Make insert_many/update_one raise as well
        max_rows: Value reported by max_rows_per_statement

    Keys added to `held[kind]` keep their lifecycle columns on writes.
    """

    def __init__(
        self,
        fail_bulk: bool = False,
        fail_fallback: bool = False,
        max_rows: int = 10_000,
    ):
        self.tables: dict[EntityKind, dict[str, dict[str, Any]]] = {
            kind: {} for kind in EntityKind
        }
        self.fail_bulk = fail_bulk
        self.fail_fallback = fail_fallback
        self.max_rows = max_rows
        self.bulk_calls: list[int] = []
        self.deactivate_missing_calls = 0
        self.replace_active_set_calls: list[int] = []
        self.held: dict[EntityKind, set[str]] = {kind: set() for kind in EntityKind}

    def seed(self, kind: EntityKind, key: str, values: tuple, is_active: bool = True) -> None:
        self.tables[kind][key] = {"values": values, "is_active": is_active, "last_sync": None}

    def active_keys(self, kind: EntityKind) -> set[str]:
        return {k for k, row in self.tables[kind].items() if row["is_active"]}

    def _write(self, kind: EntityKind, record: SheetRecord, synced_at: datetime) -> None:
        values = record.values()
        stored = self.tables[kind].get(record.natural_key)
        if stored is not None and record.natural_key in self.held[kind]:
            values = record.values_keeping_lifecycle(stored["values"])
        self.tables[kind][record.natural_key] = {
            "values": values,
            "is_active": True,
            "last_sync": synced_at,
        }

    def max_rows_per_statement(self, kind: EntityKind) -> int:
        return self.max_rows

    async def snapshot(self, kind: EntityKind) -> dict[str, tuple[Any, ...]]:
        return {
            key: row["values"] + (row["is_active"],)
            for key, row in self.tables[kind].items()
        }

    async def held_keys(self, kind: EntityKind) -> set[str]:
        return set(self.held[kind])

    async def bulk_upsert(self, kind, records, synced_at) -> None:
        self.bulk_calls.append(len(records))
        if self.fail_bulk:
            raise BulkWriteError("bulk statement rejected", kind=kind.value, chunk_size=len(records))
        for record in records:
            self._write(kind, record, synced_at)

    async def fetch_existing_keys(self, kind, keys: Sequence[str]) -> set[str]:
        return {k for k in keys if k in self.tables[kind]}

    async def insert_many(self, kind, records, synced_at) -> None:
        if self.fail_fallback:
            raise RuntimeError("insert failed")
        for record in records:
            self._write(kind, record, synced_at)

    async def update_one(self, kind, record, synced_at) -> None:
        if self.fail_fallback:
            raise RuntimeError("update failed")
        self._write(kind, record, synced_at)

    async def deactivate_missing(self, kind, keys: Sequence[str]) -> int:
        self.deactivate_missing_calls += 1
        incoming = set(keys)
        count = 0
        for key, row in self.tables[kind].items():
            if row["is_active"] and key not in incoming:
                row["is_active"] = False
                count += 1
        return count

    async def replace_active_set(self, kind, keys: Sequence[str], chunk_size: int) -> int:
        self.replace_active_set_calls.append(chunk_size)
        previously_active = 0
        for row in self.tables[kind].values():
            if row["is_active"]:
                previously_active += 1
                row["is_active"] = False
        for start in range(0, len(keys), chunk_size):
            for key in keys[start : start + chunk_size]:
                if key in self.tables[kind]:
                    self.tables[kind][key]["is_active"] = True
        return previously_active


class InMemoryDistributorRepository(IDistributorRepository):
    def __init__(self, names: Sequence[str] = ()):
        self.rows: dict[str, str] = {}
        self.create_calls: list[str] = []
        for name in names:
            self.rows[str(uuid4())] = name

    def id_of(self, name: str) -> Optional[str]:
        for id_, stored in self.rows.items():
            if stored.lower() == name.lower():
                return id_
        return None

    async def list_all(self) -> list[tuple[str, str]]:
        return list(self.rows.items())

    async def create(self, name: str) -> str:
        self.create_calls.append(name)
        existing = self.id_of(name)
        if existing:
            return existing
        id_ = str(uuid4())
        self.rows[id_] = name
        return id_


class InMemoryPhoneModelRepository(IPhoneModelRepository):
    def __init__(self, models: Sequence[tuple[str, str]] = ()):
        self.rows: dict[str, tuple[str, str]] = {}
        for brand, model in models:
            self.rows[str(uuid4())] = (brand, model)

    async def list_all(self) -> list[tuple[str, str, str]]:
        return [(id_, brand, model) for id_, (brand, model) in self.rows.items()]

    async def create(self, brand: str, model: str) -> str:
        for id_, (b, m) in self.rows.items():
            if b.lower() == brand.lower() and m.lower() == model.lower():
                return id_
        id_ = str(uuid4())
        self.rows[id_] = (brand, model)
        return id_


class StaticSnapshotProvider(ISnapshotProvider):
    def __init__(self, rows: dict[EntityKind, list[dict[str, Any]]]):
        self.rows = rows
        self.requested: list[EntityKind] = []

    async def fetch_rows(self, kind: EntityKind) -> list[dict[str, Any]]:
        self.requested.append(kind)
        return self.rows.get(kind, [])


# ============================================
# Assignment fakes
# ============================================

class InMemoryAssignmentUnitOfWork(IAssignmentUnitOfWork):
    def __init__(self, repo: "InMemoryAssignmentRepository"):
        self.repo = repo

    async def lock_device(self, device_id: UUID) -> Optional[Device]:
        device = self.repo.devices.get(device_id)
        return copy.deepcopy(device) if device else None

    async def lock_device_by_imei(self, imei: str) -> Optional[Device]:
        for device in self.repo.devices.values():
            if device.imei == imei:
                return copy.deepcopy(device)
        return None

    async def lock_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        assignment = self.repo.assignments.get(assignment_id)
        return copy.deepcopy(assignment) if assignment else None

    async def find_active_assignment(self, device_id: UUID) -> Optional[Assignment]:
        for assignment in self.repo.assignments.values():
            if assignment.device_id == device_id and assignment.is_active:
                return copy.deepcopy(assignment)
        return None

    async def distributor_exists(self, distributor_id: UUID) -> bool:
        return distributor_id in self.repo.distributors

    async def insert_device(self, device: Device) -> None:
        self.repo.devices[device.id] = copy.deepcopy(device)

    async def save_device(self, device: Device) -> None:
        self.repo.devices[device.id] = copy.deepcopy(device)

    async def insert_assignment(self, assignment: Assignment) -> None:
        if self.repo.fail_on_insert_assignment:
            raise RuntimeError("insert rejected")
        self.repo.assignments[assignment.id] = copy.deepcopy(assignment)

    async def save_assignment(self, assignment: Assignment) -> None:
        self.repo.assignments[assignment.id] = copy.deepcopy(assignment)

    async def insert_shipment(self, shipment: Shipment) -> None:
        if self.repo.fail_on_insert_shipment:
            raise RuntimeError("voucher collision")
        self.repo.shipments[shipment.assignment_id] = copy.deepcopy(shipment)

    async def update_shipment_status(
        self,
        assignment_id: UUID,
        status: ShipmentStatus,
        at: datetime,
    ) -> Optional[Shipment]:
        shipment = self.repo.shipments.get(assignment_id)
        if shipment is None:
            return None
        shipment.status = status
        shipment.updated_at = at
        return copy.deepcopy(shipment)


class InMemoryAssignmentRepository(IAssignmentRepository):
    """Assignment repository whose transactions roll back on exception."""

    def __init__(self):
        self.devices: dict[UUID, Device] = {}
        self.assignments: dict[UUID, Assignment] = {}
        self.shipments: dict[UUID, Shipment] = {}
        self.distributors: set[UUID] = set()
        self.fail_on_insert_assignment = False
        self.fail_on_insert_shipment = False

    def add_device(self, imei: str = "356000000000001", **fields) -> Device:
        device = Device(id=uuid4(), imei=imei, **fields)
        self.devices[device.id] = device
        return device

    def add_distributor(self) -> UUID:
        distributor_id = uuid4()
        self.distributors.add(distributor_id)
        return distributor_id

    def active_assignments(self, device_id: UUID) -> list[Assignment]:
        return [
            a for a in self.assignments.values()
            if a.device_id == device_id and a.is_active
        ]

    @asynccontextmanager
    async def transaction(self):
        saved = copy.deepcopy((self.devices, self.assignments, self.shipments))
        try:
            yield InMemoryAssignmentUnitOfWork(self)
        except BaseException:
            self.devices, self.assignments, self.shipments = saved
            raise

    async def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        return self.assignments.get(assignment_id)

    async def list_assignments(
        self,
        device_id: Optional[UUID] = None,
        status: Optional[AssignmentStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Assignment]:
        rows = [
            a for a in self.assignments.values()
            if (device_id is None or a.device_id == device_id)
            and (status is None or a.status == status)
        ]
        rows.sort(key=lambda a: a.created_at, reverse=True)
        return rows[offset : offset + limit]
