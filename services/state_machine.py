"""Appointment status transitions"""

from database.models import AppointmentStatus, OPEN_STATUSES
from utils.errors import InvalidTransitionError

# target status -> statuses it may be reached from
TRANSITIONS = {
    AppointmentStatus.CONFIRMED: (AppointmentStatus.PENDING,),
    AppointmentStatus.COMPLETED: OPEN_STATUSES,
    AppointmentStatus.CANCELLED: OPEN_STATUSES,
    AppointmentStatus.NO_SHOW: OPEN_STATUSES,
    AppointmentStatus.EMERGENCY_CANCELLED: OPEN_STATUSES,
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return current in TRANSITIONS.get(target, ())


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus):
    if not can_transition(current, target):
        if current.is_terminal:
            message = f"Appointment is already {current.value} and cannot be changed."
        else:
            message = f"Cannot change appointment from {current.value} to {target.value}."
        raise InvalidTransitionError(message)


def ensure_reschedulable(current: AppointmentStatus):
    """Time or barber changes keep the status and need an open appointment"""
    if current not in OPEN_STATUSES:
        raise InvalidTransitionError(
            f"Appointment is already {current.value} and cannot be rescheduled."
        )
