"""Data models"""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from config import DEFAULT_PRODUCT_UNIT


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    EMERGENCY_CANCELLED = "emergency-cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Statuses that release the slot
RELEASED_STATUSES = (
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.EMERGENCY_CANCELLED,
)
TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.EMERGENCY_CANCELLED,
)
# Statuses from which any transition is still possible
OPEN_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class Role(str, Enum):
    CUSTOMER = "customer"
    BARBER = "barber"
    MANAGER = "manager"
    ADMIN = "admin"


class CancelledBy(str, Enum):
    CUSTOMER = "customer"
    BARBER = "barber"
    MANAGER = "manager"
    SYSTEM = "system"


class CompletedBy(str, Enum):
    BARBER = "barber"
    MANAGER = "manager"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT = "credit"
    DEBIT = "debit"
    MOBILE = "mobile"


@dataclass
class Actor:
    """Authenticated caller as supplied by the identity service"""
    user_id: int
    role: Role
    managed_salon_ids: Tuple[int, ...] = ()

    def manages(self, salon_id: int) -> bool:
        return salon_id in self.managed_salon_ids


@dataclass
class User:
    """Directory entry mirrored from the identity service"""
    id: int
    name: str
    role: Role
    is_active: bool = True
    telegram_id: Optional[int] = None


@dataclass
class Service:
    """Catalog service; price and duration are copied at booking time"""
    id: int
    name: str
    price: float
    duration_minutes: int
    is_active: bool = True


@dataclass
class WorkScheduleEntry:
    """One weekday of a barber's recurring schedule (0=Sunday)"""
    day: int
    start_time: str
    end_time: str
    is_working: bool = True


@dataclass
class OperatingHoursEntry:
    """One weekday of a salon's opening hours (0=Sunday)"""
    day: int
    open_time: str
    close_time: str
    is_closed: bool = False


@dataclass
class Salon:
    id: int
    name: str
    is_active: bool = True
    operating_hours: List[OperatingHoursEntry] = field(default_factory=list)
    staff_ids: List[int] = field(default_factory=list)


@dataclass
class ProductUsage:
    product: str
    quantity: float
    unit: str = DEFAULT_PRODUCT_UNIT


@dataclass
class Appointment:
    """A single non-recurring reservation"""
    id: Optional[int]
    customer_id: int
    barber_id: int
    service_id: int
    salon_id: int
    date: str
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.PENDING

    # Walk-ins
    is_walk_in: bool = False
    queue_number: Optional[int] = None
    estimated_wait_time: Optional[int] = None  # minutes

    # Cancellation
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_time: Optional[str] = None

    # Emergency protocol
    is_emergency: bool = False
    emergency_details: Optional[str] = None

    completed_by: Optional[CompletedBy] = None

    # Frozen at creation
    price: Optional[float] = None
    is_paid: bool = False
    payment_method: Optional[PaymentMethod] = None

    products_used: List[ProductUsage] = field(default_factory=list)
    rating: Optional[int] = None
    review: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None

    # Loaded from JOIN
    customer_name: Optional[str] = None
    barber_name: Optional[str] = None
    service_name: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Appointment":
        keys = row.keys()
        return cls(
            id=row["id"],
            customer_id=row["customer_id"],
            barber_id=row["barber_id"],
            service_id=row["service_id"],
            salon_id=row["salon_id"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            status=AppointmentStatus(row["status"]),
            is_walk_in=bool(row["is_walk_in"]),
            queue_number=row["queue_number"],
            estimated_wait_time=row["estimated_wait_time"],
            cancellation_reason=row["cancellation_reason"],
            cancelled_by=CancelledBy(row["cancelled_by"]) if row["cancelled_by"] else None,
            cancellation_time=row["cancellation_time"],
            is_emergency=bool(row["is_emergency"]),
            emergency_details=row["emergency_details"],
            completed_by=CompletedBy(row["completed_by"]) if row["completed_by"] else None,
            price=row["price"],
            is_paid=bool(row["is_paid"]),
            payment_method=PaymentMethod(row["payment_method"]) if row["payment_method"] else None,
            products_used=[
                ProductUsage(**item) for item in json.loads(row["products_used"] or "[]")
            ],
            rating=row["rating"],
            review=row["review"],
            notes=row["notes"],
            created_at=row["created_at"],
            customer_name=row["customer_name"] if "customer_name" in keys else None,
            barber_name=row["barber_name"] if "barber_name" in keys else None,
            service_name=row["service_name"] if "service_name" in keys else None,
        )

    @property
    def is_active(self) -> bool:
        """Still occupies the barber's time"""
        return self.status not in RELEASED_STATUSES

    def to_dict(self) -> dict:
        """Plain JSON-friendly representation used in event payloads"""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data


@dataclass
class TimeSlot:
    start: str
    end: str
    is_booked: bool = False
    appointment_id: Optional[int] = None


@dataclass
class DayAvailability:
    """Grid for one barber and day

    ``is_work_day`` distinguishes "barber off today" from "booked solid".
    """
    date: str
    barber_id: int
    salon_id: int
    is_work_day: bool
    slots: List[TimeSlot] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def free_slots(self) -> List[TimeSlot]:
        return [slot for slot in self.slots if not slot.is_booked]


@dataclass
class EmergencyCancelResult:
    cancelled_count: int
    cancelled_appointment_ids: List[int]
