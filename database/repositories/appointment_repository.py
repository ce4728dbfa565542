"""Appointment storage"""

import json
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, List, Optional

import aiosqlite

from database.base_repository import BaseRepository
from database.models import (
    OPEN_STATUSES,
    RELEASED_STATUSES,
    Appointment,
    AppointmentStatus,
    CancelledBy,
)

SELECT_WITH_NAMES = """SELECT a.*,
    c.name AS customer_name, b.name AS barber_name, s.name AS service_name
    FROM appointments a
    LEFT JOIN users c ON c.id = a.customer_id
    LEFT JOIN users b ON b.id = a.barber_id
    LEFT JOIN services s ON s.id = a.service_id"""

_RELEASED = tuple(s.value for s in RELEASED_STATUSES)
_OPEN = tuple(s.value for s in OPEN_STATUSES)

# Columns that may be changed after creation
UPDATABLE_COLUMNS = {
    "date",
    "start_time",
    "end_time",
    "barber_id",
    "status",
    "cancellation_reason",
    "cancelled_by",
    "cancellation_time",
    "completed_by",
    "is_paid",
    "payment_method",
    "products_used",
    "rating",
    "review",
    "notes",
}


def _placeholders(values) -> str:
    return ", ".join("?" for _ in values)


def _to_db(column: str, value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if column == "products_used":
        return json.dumps([asdict(item) for item in value or []])
    return value


class AppointmentRepository(BaseRepository):
    """Queries used by the availability, conflict and state-machine paths"""

    @staticmethod
    async def insert(db: aiosqlite.Connection, appointment: Appointment) -> int:
        cursor = await db.execute(
            """INSERT INTO appointments
            (customer_id, barber_id, service_id, salon_id, date, start_time, end_time,
             status, is_walk_in, queue_number, estimated_wait_time, price, is_paid,
             payment_method, products_used, notes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                appointment.customer_id,
                appointment.barber_id,
                appointment.service_id,
                appointment.salon_id,
                appointment.date,
                appointment.start_time,
                appointment.end_time,
                appointment.status.value,
                appointment.is_walk_in,
                appointment.queue_number,
                appointment.estimated_wait_time,
                appointment.price,
                appointment.is_paid,
                _to_db("payment_method", appointment.payment_method),
                _to_db("products_used", appointment.products_used),
                appointment.notes,
                appointment.created_at,
            ),
        )
        return cursor.lastrowid

    @staticmethod
    async def get_by_id(
        db: aiosqlite.Connection, appointment_id: int
    ) -> Optional[Appointment]:
        row = await AppointmentRepository._fetch_one(
            db, f"{SELECT_WITH_NAMES} WHERE a.id=?", (appointment_id,)
        )
        return Appointment.from_row(row) if row else None

    @staticmethod
    async def find_active_for_barber_day(
        db: aiosqlite.Connection,
        barber_id: int,
        date_str: str,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Appointment]:
        """Appointments still holding the barber's time on that day"""
        query = (
            f"{SELECT_WITH_NAMES} WHERE a.barber_id=? AND a.date=? "
            f"AND a.status NOT IN ({_placeholders(_RELEASED)})"
        )
        params: List[Any] = [barber_id, date_str, *_RELEASED]
        if exclude_appointment_id is not None:
            query += " AND a.id != ?"
            params.append(exclude_appointment_id)
        query += " ORDER BY a.start_time"

        rows = await AppointmentRepository._fetch_all(db, query, params)
        return [Appointment.from_row(row) for row in rows]

    @staticmethod
    async def list_appointments(
        db: aiosqlite.Connection,
        customer_id: Optional[int] = None,
        barber_id: Optional[int] = None,
        salon_ids: Optional[List[int]] = None,
        date_from: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        clauses = []
        params: List[Any] = []
        if customer_id is not None:
            clauses.append("a.customer_id=?")
            params.append(customer_id)
        if barber_id is not None:
            clauses.append("a.barber_id=?")
            params.append(barber_id)
        if salon_ids is not None:
            if not salon_ids:
                return []
            clauses.append(f"a.salon_id IN ({_placeholders(salon_ids)})")
            params.extend(salon_ids)
        if date_from is not None:
            clauses.append("a.date >= ?")
            params.append(date_from)
        if status is not None:
            clauses.append("a.status=?")
            params.append(status.value)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = await AppointmentRepository._fetch_all(
            db, f"{SELECT_WITH_NAMES}{where} ORDER BY a.date, a.start_time, a.id", params
        )
        return [Appointment.from_row(row) for row in rows]

    @staticmethod
    async def update_fields(
        db: aiosqlite.Connection, appointment_id: int, fields: Dict[str, Any]
    ) -> bool:
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        if not fields:
            return False

        assignments = ", ".join(f"{column}=?" for column in fields)
        values = [_to_db(column, value) for column, value in fields.items()]
        cursor = await db.execute(
            f"UPDATE appointments SET {assignments} WHERE id=?",
            (*values, appointment_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def next_queue_number(
        db: aiosqlite.Connection, salon_id: int, date_str: str
    ) -> int:
        row = await AppointmentRepository._fetch_one(
            db,
            "SELECT MAX(queue_number) FROM appointments WHERE salon_id=? AND date=? AND is_walk_in=1",
            (salon_id, date_str),
        )
        return (row[0] or 0) + 1 if row else 1

    @staticmethod
    async def find_emergency_snapshot(
        db: aiosqlite.Connection, barber_id: int, from_date: str
    ) -> List[Appointment]:
        """Open appointments of a barber from a date onwards"""
        rows = await AppointmentRepository._fetch_all(
            db,
            f"""{SELECT_WITH_NAMES} WHERE a.barber_id=? AND a.date >= ?
            AND a.status IN ({_placeholders(_OPEN)})
            ORDER BY a.date, a.start_time""",
            (barber_id, from_date, *_OPEN),
        )
        return [Appointment.from_row(row) for row in rows]

    @staticmethod
    async def mark_emergency_cancelled(
        db: aiosqlite.Connection,
        appointment_ids: List[int],
        reason: str,
        cancellation_time: str,
    ) -> int:
        """Transition exactly the given ids; returns the number updated"""
        if not appointment_ids:
            return 0
        cursor = await db.execute(
            f"""UPDATE appointments
            SET status=?, cancellation_reason=?, cancelled_by=?, cancellation_time=?,
                is_emergency=1, emergency_details=?
            WHERE id IN ({_placeholders(appointment_ids)})
            AND status IN ({_placeholders(_OPEN)})""",
            (
                AppointmentStatus.EMERGENCY_CANCELLED.value,
                reason,
                CancelledBy.SYSTEM.value,
                cancellation_time,
                reason,
                *appointment_ids,
                *_OPEN,
            ),
        )
        return cursor.rowcount
