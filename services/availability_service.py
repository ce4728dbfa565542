"""Bookable slots for a barber on a given day"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

import aiosqlite

from config import SLOT_MINUTES
from database.connection import connect
from database.models import Appointment, DayAvailability, TimeSlot
from database.repositories import AppointmentRepository, CatalogRepository, UserRepository
from services.conflict_detector import intervals_overlap
from utils.datetime_utils import (
    iterate_slots,
    minutes_to_time,
    parse_date,
    parse_time_to_minutes,
    weekday_index,
)
from utils.errors import NotFoundError, ValidationError, as_result

NOT_A_WORK_DAY = "not a work day"
SALON_CLOSED = "salon closed"


@dataclass
class WorkWindow:
    """Bookable range of one day, in minutes; empty when reason is set"""
    start: int = 0
    end: int = 0
    reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.reason is None

    def contains(self, start: int, end: int) -> bool:
        return self.is_open and self.start <= start and end <= self.end


async def resolve_work_window(
    db: aiosqlite.Connection, barber_id: int, salon_id: int, day: date
) -> WorkWindow:
    """Barber's weekly schedule for the day, bounded by salon hours

    A salon without any configured hours does not restrict the barber.
    """
    weekday = weekday_index(day)
    entry = await CatalogRepository.get_work_schedule_entry(db, barber_id, weekday)
    if entry is None or not entry.is_working:
        return WorkWindow(reason=NOT_A_WORK_DAY)

    start = parse_time_to_minutes(entry.start_time)
    end = parse_time_to_minutes(entry.end_time)

    hours = await CatalogRepository.get_operating_hours(db, salon_id)
    if hours:
        today = next((h for h in hours if h.day == weekday), None)
        if today is None or today.is_closed:
            return WorkWindow(reason=SALON_CLOSED)
        start = max(start, parse_time_to_minutes(today.open_time))
        end = min(end, parse_time_to_minutes(today.close_time))

    if end <= start:
        return WorkWindow(reason=SALON_CLOSED)
    return WorkWindow(start=start, end=end)


def build_slots(
    window: WorkWindow, appointments: List[Appointment], slot_minutes: int = SLOT_MINUTES
) -> List[TimeSlot]:
    """Grid over the window, marking cells any appointment overlaps"""
    booked = [
        (
            parse_time_to_minutes(a.start_time),
            parse_time_to_minutes(a.end_time),
            a.id,
        )
        for a in appointments
    ]

    slots = []
    for slot_start, slot_end in iterate_slots(window.start, window.end, slot_minutes):
        holder = next(
            (
                appointment_id
                for start, end, appointment_id in booked
                if intervals_overlap(start, end, slot_start, slot_end)
            ),
            None,
        )
        slots.append(
            TimeSlot(
                start=minutes_to_time(slot_start),
                end=minutes_to_time(slot_end),
                is_booked=holder is not None,
                appointment_id=holder,
            )
        )
    return slots


class AvailabilityService:
    """Recomputes availability on every call; nothing is cached"""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def compute(
        self, barber_id: int, salon_id: int, day: Union[str, date]
    ) -> DayAvailability:
        target = parse_date(day)
        if not barber_id or not salon_id:
            raise ValidationError("Please provide barber, salon and date.")

        async with connect(self.db_path) as db:
            if await UserRepository.get_active_barber(db, barber_id) is None:
                raise NotFoundError("Barber not found or inactive.")
            if await CatalogRepository.get_salon(db, salon_id) is None:
                raise NotFoundError("Salon not found.")

            window = await resolve_work_window(db, barber_id, salon_id, target)
            if not window.is_open:
                return DayAvailability(
                    date=target.isoformat(),
                    barber_id=barber_id,
                    salon_id=salon_id,
                    is_work_day=False,
                    reason=window.reason,
                )

            appointments = await AppointmentRepository.find_active_for_barber_day(
                db, barber_id, target.isoformat()
            )

        return DayAvailability(
            date=target.isoformat(),
            barber_id=barber_id,
            salon_id=salon_id,
            is_work_day=True,
            slots=build_slots(window, appointments),
        )

    @as_result
    async def get_availability(self, barber_id: int, salon_id: int, day: Union[str, date]):
        """GetAvailability(barberId, salonId, date) -> DayAvailability"""
        return await self.compute(barber_id, salon_id, day)
