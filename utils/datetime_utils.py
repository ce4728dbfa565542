"""Date and time-of-day helpers for the slot grid"""

import re
from datetime import date, datetime
from typing import Iterator, Tuple, Union

from config import SLOT_MINUTES, TIMEZONE
from utils.errors import ValidationError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def now_local() -> datetime:
    """Current time in the salon time zone (aware)"""
    return datetime.now(TIMEZONE)


def today_local() -> date:
    return now_local().date()


def is_valid_time(value) -> bool:
    """True for a zero-padded 24-hour ``HH:MM`` string"""
    return isinstance(value, str) and TIME_PATTERN.match(value) is not None


def parse_time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight

    Raises:
        ValidationError: if the string is not a valid time of day
    """
    match = TIME_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time '{value}'. Use 24-hour HH:MM format.")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value: Union[str, date]) -> date:
    """Parse a time-zone-naive calendar day

    Accepts a ``date`` or an ISO ``YYYY-MM-DD`` string.

    Raises:
        ValidationError: on a missing, malformed or impossible date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError("Date is required.")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date format '{value}'. Use YYYY-MM-DD.")


def is_on_grid(value: str, slot_minutes: int = SLOT_MINUTES) -> bool:
    return parse_time_to_minutes(value) % slot_minutes == 0


def validate_time_range(
    start_time: str, end_time: str, slot_minutes: int = SLOT_MINUTES
) -> Tuple[int, int]:
    """Validate a [start, end) range on the slot grid

    Returns:
        Tuple[int, int]: start and end in minutes since midnight
    """
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)

    if end <= start:
        raise ValidationError("End time must be after start time.")
    if start % slot_minutes or end % slot_minutes:
        raise ValidationError(
            f"Times must be on {slot_minutes}-minute boundaries."
        )
    return start, end


def weekday_index(day: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday"""
    return (day.weekday() + 1) % 7


def round_up_to_grid(minutes: int, slot_minutes: int = SLOT_MINUTES) -> int:
    remainder = minutes % slot_minutes
    return minutes if remainder == 0 else minutes + slot_minutes - remainder


def iterate_slots(
    start_minutes: int, end_minutes: int, slot_minutes: int = SLOT_MINUTES
) -> Iterator[Tuple[int, int]]:
    """Yield consecutive grid cells covering [start, end)

    A start that is not on the grid is rounded up; a trailing partial cell
    is not produced.
    """
    current = round_up_to_grid(start_minutes, slot_minutes)
    while current + slot_minutes <= end_minutes:
        yield current, current + slot_minutes
        current += slot_minutes
