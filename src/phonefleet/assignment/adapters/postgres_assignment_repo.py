"""PostgreSQL repository adapter for the assignment lifecycle.

Implements IAssignmentRepository on top of database_transaction(): each
unit of work is one asyncpg connection inside one transaction, and the
lock_* reads use SELECT ... FOR UPDATE so the guards of a lifecycle
operation see rows no concurrent operation can change underneath them.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional
from uuid import UUID

from ...api.database import database_connection, database_transaction
from ..domain.entities import (
    Assignment,
    AssignmentStatus,
    AssignmentType,
    Device,
    DeviceStatus,
    ReturnStatus,
    Shipment,
    ShipmentStatus,
    ShippingStatus,
)
from ..domain.ports import IAssignmentRepository, IAssignmentUnitOfWork

if TYPE_CHECKING:
    import asyncpg

DEVICE_COLUMNS = """
    id, imei, status, model_id, distributor_id, assigned_to, ticket,
    is_deleted, deleted_at, deletion_reason, is_backup, backup_distributor_id,
    is_active, created_at, updated_at
"""

ASSIGNMENT_COLUMNS = """
    id, device_id, assignee_name, type, status, assignee_phone, assignee_email,
    contact_details, distributor_id, delivery_location, expects_return,
    return_device_imei, shipping_voucher_id, shipping_status, return_status,
    previous_device_status, ticket, shipping_notes, return_notes,
    closure_reason, shipped_at, delivered_at, return_received_at,
    cancelled_at, closed_at, created_at, updated_at
"""

SHIPMENT_COLUMNS = """
    id, assignment_id, voucher_id, destination, status, created_at, updated_at
"""


def _enum(enum_type, value):
    return enum_type(value) if value is not None else None


def _value(member) -> Optional[str]:
    return member.value if member is not None else None


def row_to_device(row: Any) -> Device:
    return Device(
        id=row["id"],
        imei=row["imei"],
        status=DeviceStatus(row["status"]),
        model_id=row["model_id"],
        distributor_id=row["distributor_id"],
        assigned_to=row["assigned_to"],
        ticket=row["ticket"],
        is_deleted=row["is_deleted"],
        deleted_at=row["deleted_at"],
        deletion_reason=row["deletion_reason"],
        is_backup=row["is_backup"],
        backup_distributor_id=row["backup_distributor_id"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_assignment(row: Any) -> Assignment:
    return Assignment(
        id=row["id"],
        device_id=row["device_id"],
        assignee_name=row["assignee_name"],
        type=AssignmentType(row["type"]),
        status=AssignmentStatus(row["status"]),
        assignee_phone=row["assignee_phone"],
        assignee_email=row["assignee_email"],
        contact_details=row["contact_details"],
        distributor_id=row["distributor_id"],
        delivery_location=row["delivery_location"],
        expects_return=row["expects_return"],
        return_device_imei=row["return_device_imei"],
        shipping_voucher_id=row["shipping_voucher_id"],
        shipping_status=_enum(ShippingStatus, row["shipping_status"]),
        return_status=_enum(ReturnStatus, row["return_status"]),
        previous_device_status=_enum(DeviceStatus, row["previous_device_status"]),
        ticket=row["ticket"],
        shipping_notes=row["shipping_notes"],
        return_notes=row["return_notes"],
        closure_reason=row["closure_reason"],
        shipped_at=row["shipped_at"],
        delivered_at=row["delivered_at"],
        return_received_at=row["return_received_at"],
        cancelled_at=row["cancelled_at"],
        closed_at=row["closed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_shipment(row: Any) -> Shipment:
    return Shipment(
        id=row["id"],
        assignment_id=row["assignment_id"],
        voucher_id=row["voucher_id"],
        destination=row["destination"],
        status=ShipmentStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresAssignmentUnitOfWork(IAssignmentUnitOfWork):
    """Unit of work bound to one connection with an open transaction."""

    def __init__(self, conn: "asyncpg.Connection"):
        self.conn = conn

    async def lock_device(self, device_id: UUID) -> Optional[Device]:
        row = await self.conn.fetchrow(
            f"SELECT {DEVICE_COLUMNS} FROM devices WHERE id = $1 FOR UPDATE",
            device_id,
        )
        return row_to_device(row) if row else None

    async def lock_device_by_imei(self, imei: str) -> Optional[Device]:
        row = await self.conn.fetchrow(
            f"SELECT {DEVICE_COLUMNS} FROM devices WHERE imei = $1 FOR UPDATE",
            imei,
        )
        return row_to_device(row) if row else None

    async def lock_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        row = await self.conn.fetchrow(
            f"SELECT {ASSIGNMENT_COLUMNS} FROM assignments WHERE id = $1 FOR UPDATE",
            assignment_id,
        )
        return row_to_assignment(row) if row else None

    async def find_active_assignment(self, device_id: UUID) -> Optional[Assignment]:
        row = await self.conn.fetchrow(
            f"""
            SELECT {ASSIGNMENT_COLUMNS} FROM assignments
            WHERE device_id = $1 AND status = 'active'
            ORDER BY created_at DESC
            LIMIT 1
            """,
            device_id,
        )
        return row_to_assignment(row) if row else None

    async def distributor_exists(self, distributor_id: UUID) -> bool:
        return await self.conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM distributors WHERE id = $1)",
            distributor_id,
        )

    async def insert_device(self, device: Device) -> None:
        await self.conn.execute(
            """
            INSERT INTO devices (
                id, imei, status, model_id, distributor_id, is_backup,
                is_active, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            device.id,
            device.imei,
            device.status.value,
            device.model_id,
            device.distributor_id,
            device.is_backup,
            device.is_active,
            device.created_at,
            device.updated_at,
        )

    async def save_device(self, device: Device) -> None:
        await self.conn.execute(
            """
            UPDATE devices SET
                status = $2,
                distributor_id = $3,
                assigned_to = $4,
                ticket = $5,
                is_deleted = $6,
                deleted_at = $7,
                deletion_reason = $8,
                updated_at = $9
            WHERE id = $1
            """,
            device.id,
            device.status.value,
            device.distributor_id,
            device.assigned_to,
            device.ticket,
            device.is_deleted,
            device.deleted_at,
            device.deletion_reason,
            device.updated_at,
        )

    async def insert_assignment(self, assignment: Assignment) -> None:
        await self.conn.execute(
            f"""
            INSERT INTO assignments ({ASSIGNMENT_COLUMNS})
            VALUES (
                $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
                $15, $16, $17, $18, $19, $20, $21, $22, $23, $24, $25, $26, $27
            )
            """,
            *self._assignment_values(assignment),
        )

    async def save_assignment(self, assignment: Assignment) -> None:
        await self.conn.execute(
            """
            UPDATE assignments SET
                assignee_name = $2,
                status = $3,
                assignee_phone = $4,
                assignee_email = $5,
                contact_details = $6,
                delivery_location = $7,
                return_device_imei = $8,
                shipping_status = $9,
                return_status = $10,
                shipping_notes = $11,
                return_notes = $12,
                closure_reason = $13,
                shipped_at = $14,
                delivered_at = $15,
                return_received_at = $16,
                cancelled_at = $17,
                closed_at = $18,
                updated_at = $19
            WHERE id = $1
            """,
            assignment.id,
            assignment.assignee_name,
            assignment.status.value,
            assignment.assignee_phone,
            assignment.assignee_email,
            assignment.contact_details,
            assignment.delivery_location,
            assignment.return_device_imei,
            _value(assignment.shipping_status),
            _value(assignment.return_status),
            assignment.shipping_notes,
            assignment.return_notes,
            assignment.closure_reason,
            assignment.shipped_at,
            assignment.delivered_at,
            assignment.return_received_at,
            assignment.cancelled_at,
            assignment.closed_at,
            assignment.updated_at,
        )

    async def insert_shipment(self, shipment: Shipment) -> None:
        await self.conn.execute(
            f"""
            INSERT INTO shipments ({SHIPMENT_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            shipment.id,
            shipment.assignment_id,
            shipment.voucher_id,
            shipment.destination,
            shipment.status.value,
            shipment.created_at,
            shipment.updated_at,
        )

    async def update_shipment_status(
        self,
        assignment_id: UUID,
        status: ShipmentStatus,
        at: datetime,
    ) -> Optional[Shipment]:
        row = await self.conn.fetchrow(
            f"""
            UPDATE shipments SET status = $2, updated_at = $3
            WHERE assignment_id = $1
            RETURNING {SHIPMENT_COLUMNS}
            """,
            assignment_id,
            status.value,
            at,
        )
        return row_to_shipment(row) if row else None

    @staticmethod
    def _assignment_values(a: Assignment) -> tuple[Any, ...]:
        return (
            a.id, a.device_id, a.assignee_name, a.type.value, a.status.value,
            a.assignee_phone, a.assignee_email, a.contact_details,
            a.distributor_id, a.delivery_location, a.expects_return,
            a.return_device_imei, a.shipping_voucher_id,
            _value(a.shipping_status), _value(a.return_status),
            _value(a.previous_device_status), a.ticket, a.shipping_notes,
            a.return_notes, a.closure_reason, a.shipped_at, a.delivered_at,
            a.return_received_at, a.cancelled_at, a.closed_at,
            a.created_at, a.updated_at,
        )


class PostgresAssignmentRepository(IAssignmentRepository):
    """PostgreSQL implementation of IAssignmentRepository."""

    def __init__(self, pool: "asyncpg.Pool", lock_timeout_ms: Optional[int] = None):
        """Initialize the repository.

        Args:
            pool: asyncpg connection pool for database operations
            lock_timeout_ms: Upper bound on waiting for a locked row
        """
        self.pool = pool
        self.lock_timeout_ms = lock_timeout_ms

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresAssignmentUnitOfWork]:
        async with database_transaction(
            self.pool, lock_timeout_ms=self.lock_timeout_ms
        ) as conn:
            yield PostgresAssignmentUnitOfWork(conn)

    async def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        async with database_connection(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {ASSIGNMENT_COLUMNS} FROM assignments WHERE id = $1",
                assignment_id,
            )
        return row_to_assignment(row) if row else None

    async def list_assignments(
        self,
        device_id: Optional[UUID] = None,
        status: Optional[AssignmentStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Assignment]:
        conditions = []
        args: list[Any] = []
        if device_id is not None:
            args.append(device_id)
            conditions.append(f"device_id = ${len(args)}")
        if status is not None:
            args.append(status.value)
            conditions.append(f"status = ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        args.extend([limit, offset])

        async with database_connection(self.pool) as conn:
            rows = await conn.fetch(
                f"""
                SELECT {ASSIGNMENT_COLUMNS} FROM assignments
                {where}
                ORDER BY created_at DESC
                LIMIT ${len(args) - 1} OFFSET ${len(args)}
                """,
                *args,
            )
        return [row_to_assignment(row) for row in rows]
