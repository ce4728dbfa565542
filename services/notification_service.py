"""Notification dispatcher

Routing functions decide which events go to which logical channels and are
free of transport concerns. ``NotificationService`` hands the events to the
channel hub after the write has been committed.
"""

import logging
from typing import Iterable, List, Optional

from database.models import Appointment, AppointmentStatus
from services.channel_hub import (
    MANAGERS_CHANNEL,
    ChannelHub,
    Event,
    salon_channel,
    user_channel,
)

APPOINTMENT_CREATED = "appointment.created"
APPOINTMENT_UPDATED = "appointment.updated"
APPOINTMENT_CANCELLED = "appointment.cancelled"
EMERGENCY_SUMMARY = "emergency.summary"
QUEUE_UPDATED = "queue.updated"
WALK_IN_CREATED = "walk-in.created"


def _customer(appointment: Appointment) -> str:
    return appointment.customer_name or f"customer #{appointment.customer_id}"


def _barber(appointment: Appointment) -> str:
    return appointment.barber_name or f"barber #{appointment.barber_id}"


def _service(appointment: Appointment) -> str:
    return appointment.service_name or "your service"


def _payload(appointment: Appointment, message: str, **extra) -> dict:
    return {"appointment": appointment.to_dict(), "message": message, **extra}


def appointment_created_events(appointment: Appointment) -> List[Event]:
    """New booking: the barber and the salon"""
    return [
        Event(
            APPOINTMENT_CREATED,
            user_channel(appointment.barber_id),
            _payload(
                appointment,
                f"New appointment booked with {_customer(appointment)} for {_service(appointment)}",
            ),
        ),
        Event(
            APPOINTMENT_CREATED,
            salon_channel(appointment.salon_id),
            _payload(appointment, f"New appointment booked for {_service(appointment)}"),
        ),
    ]


def appointment_updated_events(
    appointment: Appointment, previous_status: AppointmentStatus
) -> List[Event]:
    """Status change or reschedule: the customer and the barber"""
    new_status = appointment.status
    if new_status is previous_status:
        change = f"rescheduled to {appointment.date} at {appointment.start_time}"
    else:
        change = new_status.value

    extra = {"previous_status": previous_status.value, "new_status": new_status.value}
    return [
        Event(
            APPOINTMENT_UPDATED,
            user_channel(appointment.customer_id),
            _payload(
                appointment,
                f"Your appointment for {_service(appointment)} has been {change}",
                **extra,
            ),
        ),
        Event(
            APPOINTMENT_UPDATED,
            user_channel(appointment.barber_id),
            _payload(
                appointment,
                f"Appointment with {_customer(appointment)} for {_service(appointment)} has been {change}",
                **extra,
            ),
        ),
    ]


def emergency_cancelled_events(
    barber_id: int,
    barber_name: Optional[str],
    reason: str,
    cancelled: List[Appointment],
) -> List[Event]:
    """One event per affected customer, one summary for managers"""
    events = [
        Event(
            APPOINTMENT_CANCELLED,
            user_channel(appointment.customer_id),
            _payload(
                appointment,
                f"Your appointment for {_service(appointment)} has been cancelled "
                f"due to an emergency: {reason}",
            ),
        )
        for appointment in cancelled
    ]
    name = barber_name or f"barber #{barber_id}"
    events.append(
        Event(
            EMERGENCY_SUMMARY,
            MANAGERS_CHANNEL,
            {
                "barber": name,
                "barber_id": barber_id,
                "reason": reason,
                "affected_appointments": len(cancelled),
                "appointment_ids": [a.id for a in cancelled],
                "message": f"Emergency cancellation for {name}: {reason}",
            },
        )
    )
    return events


def walk_in_events(appointment: Appointment) -> List[Event]:
    """New walk-in: the salon and the assigned barber"""
    return [
        Event(
            WALK_IN_CREATED,
            salon_channel(appointment.salon_id),
            _payload(
                appointment,
                f"Walk-in #{appointment.queue_number} for {_barber(appointment)}",
                estimated_wait_time=appointment.estimated_wait_time,
            ),
        ),
        Event(
            WALK_IN_CREATED,
            user_channel(appointment.barber_id),
            _payload(
                appointment,
                "You have a new walk-in customer",
                estimated_wait_time=appointment.estimated_wait_time,
            ),
        ),
    ]


def queue_updated_events(appointment: Appointment) -> List[Event]:
    """Walk-in queue changed: the salon and the assigned barber"""
    message = f"Walk-in queue updated for {appointment.date}"
    extra = {"salon_id": appointment.salon_id, "date": appointment.date}
    return [
        Event(QUEUE_UPDATED, salon_channel(appointment.salon_id), _payload(appointment, message, **extra)),
        Event(QUEUE_UPDATED, user_channel(appointment.barber_id), _payload(appointment, message, **extra)),
    ]


class NotificationService:
    """Best-effort, at-most-once delivery; never raises to the caller"""

    def __init__(self, hub: ChannelHub):
        self.hub = hub

    async def dispatch(self, events: Iterable[Event]) -> int:
        delivered = 0
        for event in events:
            try:
                delivered += await self.hub.publish(event)
            except Exception as e:
                logging.error(f"Error publishing {event.name} to {event.channel}: {e}")
        return delivered

    async def notify_created(self, appointment: Appointment):
        events = (
            walk_in_events(appointment) + queue_updated_events(appointment)
            if appointment.is_walk_in
            else appointment_created_events(appointment)
        )
        await self.dispatch(events)

    async def notify_updated(self, appointment: Appointment, previous_status: AppointmentStatus):
        events = appointment_updated_events(appointment, previous_status)
        if appointment.is_walk_in:
            events += queue_updated_events(appointment)
        await self.dispatch(events)

    async def notify_emergency(
        self,
        barber_id: int,
        barber_name: Optional[str],
        reason: str,
        cancelled: List[Appointment],
    ):
        await self.dispatch(
            emergency_cancelled_events(barber_id, barber_name, reason, cancelled)
        )
