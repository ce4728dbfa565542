"""Overlap checks for a barber's day"""

import logging
from typing import Optional

import aiosqlite

from database.repositories import AppointmentRepository
from utils.datetime_utils import parse_time_to_minutes
from utils.errors import SlotConflictError


def intervals_overlap(
    existing_start: int, existing_end: int, proposed_start: int, proposed_end: int
) -> bool:
    """Half-open [start, end) overlap test, in minutes

    Touching ranges (existing end == proposed start) do not overlap.
    """
    # Proposed start falls inside existing
    if existing_start <= proposed_start < existing_end:
        return True
    # Proposed end falls inside existing
    if existing_start < proposed_end <= existing_end:
        return True
    # Proposed fully contains existing
    return proposed_start <= existing_start and existing_end <= proposed_end


async def find_conflict(
    db: aiosqlite.Connection,
    barber_id: int,
    date_str: str,
    start_time: str,
    end_time: str,
    exclude_appointment_id: Optional[int] = None,
):
    """First active appointment overlapping the proposed range, or None

    Must run on the connection of the write transaction that will insert or
    update the appointment.
    """
    proposed_start = parse_time_to_minutes(start_time)
    proposed_end = parse_time_to_minutes(end_time)

    existing = await AppointmentRepository.find_active_for_barber_day(
        db, barber_id, date_str, exclude_appointment_id
    )
    for appointment in existing:
        if intervals_overlap(
            parse_time_to_minutes(appointment.start_time),
            parse_time_to_minutes(appointment.end_time),
            proposed_start,
            proposed_end,
        ):
            return appointment
    return None


async def has_conflict(
    db: aiosqlite.Connection,
    barber_id: int,
    date_str: str,
    start_time: str,
    end_time: str,
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    conflict = await find_conflict(
        db, barber_id, date_str, start_time, end_time, exclude_appointment_id
    )
    return conflict is not None


async def ensure_no_conflict(
    db: aiosqlite.Connection,
    barber_id: int,
    date_str: str,
    start_time: str,
    end_time: str,
    exclude_appointment_id: Optional[int] = None,
):
    conflict = await find_conflict(
        db, barber_id, date_str, start_time, end_time, exclude_appointment_id
    )
    if conflict is not None:
        logging.info(
            f"Slot {date_str} {start_time}-{end_time} for barber {barber_id} "
            f"overlaps appointment {conflict.id}"
        )
        raise SlotConflictError()
