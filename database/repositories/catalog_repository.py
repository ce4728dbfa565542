"""Catalog mirror: services, salons and barber work schedules"""

from typing import List, Optional

import aiosqlite

from database.base_repository import BaseRepository
from database.models import OperatingHoursEntry, Salon, Service, WorkScheduleEntry


class CatalogRepository(BaseRepository):
    """Read side used by the booking core, write side used by catalog sync"""

    @staticmethod
    async def upsert_service(db: aiosqlite.Connection, service: Service):
        await db.execute(
            """INSERT INTO services (id, name, price, duration_minutes, is_active)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name=excluded.name, price=excluded.price,
                duration_minutes=excluded.duration_minutes, is_active=excluded.is_active""",
            (service.id, service.name, service.price, service.duration_minutes, service.is_active),
        )

    @staticmethod
    async def get_service(db: aiosqlite.Connection, service_id: int) -> Optional[Service]:
        row = await CatalogRepository._fetch_one(
            db, "SELECT * FROM services WHERE id=?", (service_id,)
        )
        if not row:
            return None
        return Service(
            id=row["id"],
            name=row["name"],
            price=row["price"],
            duration_minutes=row["duration_minutes"],
            is_active=bool(row["is_active"]),
        )

    @staticmethod
    async def upsert_salon(db: aiosqlite.Connection, salon: Salon):
        """Replace a salon together with its operating hours and staff"""
        await db.execute(
            """INSERT INTO salons (id, name, is_active) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET name=excluded.name, is_active=excluded.is_active""",
            (salon.id, salon.name, salon.is_active),
        )
        await db.execute("DELETE FROM salon_operating_hours WHERE salon_id=?", (salon.id,))
        await db.executemany(
            """INSERT INTO salon_operating_hours (salon_id, day, open_time, close_time, is_closed)
            VALUES (?, ?, ?, ?, ?)""",
            [
                (salon.id, entry.day, entry.open_time, entry.close_time, entry.is_closed)
                for entry in salon.operating_hours
            ],
        )
        await db.execute("DELETE FROM salon_staff WHERE salon_id=?", (salon.id,))
        await db.executemany(
            "INSERT INTO salon_staff (salon_id, barber_id) VALUES (?, ?)",
            [(salon.id, barber_id) for barber_id in salon.staff_ids],
        )

    @staticmethod
    async def get_salon(db: aiosqlite.Connection, salon_id: int) -> Optional[Salon]:
        row = await CatalogRepository._fetch_one(
            db, "SELECT * FROM salons WHERE id=?", (salon_id,)
        )
        if not row:
            return None

        staff = await CatalogRepository._fetch_all(
            db, "SELECT barber_id FROM salon_staff WHERE salon_id=? ORDER BY barber_id", (salon_id,)
        )
        return Salon(
            id=row["id"],
            name=row["name"],
            is_active=bool(row["is_active"]),
            operating_hours=await CatalogRepository.get_operating_hours(db, salon_id),
            staff_ids=[r["barber_id"] for r in staff],
        )

    @staticmethod
    async def get_operating_hours(
        db: aiosqlite.Connection, salon_id: int
    ) -> List[OperatingHoursEntry]:
        rows = await CatalogRepository._fetch_all(
            db,
            "SELECT * FROM salon_operating_hours WHERE salon_id=? ORDER BY day",
            (salon_id,),
        )
        return [
            OperatingHoursEntry(
                day=r["day"],
                open_time=r["open_time"],
                close_time=r["close_time"],
                is_closed=bool(r["is_closed"]),
            )
            for r in rows
        ]

    @staticmethod
    async def get_barber_salon_ids(db: aiosqlite.Connection, barber_id: int) -> List[int]:
        rows = await CatalogRepository._fetch_all(
            db, "SELECT salon_id FROM salon_staff WHERE barber_id=? ORDER BY salon_id", (barber_id,)
        )
        return [r["salon_id"] for r in rows]

    @staticmethod
    async def set_work_schedule(
        db: aiosqlite.Connection, barber_id: int, entries: List[WorkScheduleEntry]
    ):
        await db.execute("DELETE FROM work_schedules WHERE barber_id=?", (barber_id,))
        await db.executemany(
            """INSERT INTO work_schedules (barber_id, day, start_time, end_time, is_working)
            VALUES (?, ?, ?, ?, ?)""",
            [
                (barber_id, e.day, e.start_time, e.end_time, e.is_working)
                for e in entries
            ],
        )

    @staticmethod
    async def get_work_schedule_entry(
        db: aiosqlite.Connection, barber_id: int, day: int
    ) -> Optional[WorkScheduleEntry]:
        row = await CatalogRepository._fetch_one(
            db,
            "SELECT * FROM work_schedules WHERE barber_id=? AND day=?",
            (barber_id, day),
        )
        if not row:
            return None
        return WorkScheduleEntry(
            day=row["day"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            is_working=bool(row["is_working"]),
        )
