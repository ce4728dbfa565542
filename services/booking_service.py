"""Appointment booking and lifecycle"""

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

import aiosqlite

from config import DAY_NAMES
from database.connection import connect, write_transaction
from database.models import (
    OPEN_STATUSES,
    Actor,
    Appointment,
    AppointmentStatus,
    CancelledBy,
    EmergencyCancelResult,
    PaymentMethod,
    ProductUsage,
    Role,
)
from database.repositories import AppointmentRepository, CatalogRepository, UserRepository
from services import authorization
from services.availability_service import AvailabilityService, resolve_work_window
from services.conflict_detector import ensure_no_conflict
from services.notification_service import NotificationService
from services.state_machine import ensure_reschedulable, ensure_transition
from utils.datetime_utils import (
    minutes_to_time,
    now_local,
    parse_date,
    parse_time_to_minutes,
    round_up_to_grid,
    today_local,
    validate_time_range,
    weekday_index,
)
from utils.errors import (
    ForbiddenError,
    InternalError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
    as_result,
)

SCHEDULE_FIELDS = {"date", "start_time", "end_time", "barber_id"}
PATCH_FIELDS = SCHEDULE_FIELDS | {
    "status",
    "notes",
    "rating",
    "review",
    "is_paid",
    "payment_method",
}

STATUS_GUARDS = {
    AppointmentStatus.CONFIRMED: authorization.can_confirm,
    AppointmentStatus.COMPLETED: authorization.can_complete,
    AppointmentStatus.CANCELLED: authorization.can_cancel,
    AppointmentStatus.NO_SHOW: authorization.can_mark_no_show,
}


def _parse_status(value: Union[str, AppointmentStatus]) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown appointment status '{value}'.")


def _parse_products(products: Iterable[Any]) -> List[ProductUsage]:
    parsed = []
    for item in products:
        if isinstance(item, ProductUsage):
            parsed.append(item)
            continue
        if not isinstance(item, dict) or not item.get("product"):
            raise ValidationError("Each product used needs a product name.")
        quantity = item.get("quantity", 0)
        if not isinstance(quantity, (int, float)) or quantity < 0:
            raise ValidationError(f"Invalid quantity for {item['product']}.")
        usage = ProductUsage(product=item["product"], quantity=quantity)
        if item.get("unit"):
            usage.unit = item["unit"]
        parsed.append(usage)
    return parsed


class BookingService:
    """Booking operations over one SQLite database

    Every check-then-write runs inside a single ``BEGIN IMMEDIATE``
    transaction; notifications go out only after commit.
    """

    def __init__(self, db_path: str, notifications: NotificationService):
        self.db_path = db_path
        self.notifications = notifications
        self.availability = AvailabilityService(db_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @as_result
    async def get_availability(self, barber_id: int, salon_id: int, day: Union[str, date]):
        return await self.availability.compute(barber_id, salon_id, day)

    @as_result
    async def get_appointment(self, appointment_id: int, actor: Actor) -> Appointment:
        async with connect(self.db_path) as db:
            appointment = await self._load(db, appointment_id)
        if not authorization.can_view(actor, appointment):
            raise ForbiddenError("Not authorized to view this appointment.")
        return appointment

    @as_result
    async def list_appointments(
        self,
        actor: Actor,
        date_from: Optional[Union[str, date]] = None,
        status: Optional[str] = None,
    ) -> List[Appointment]:
        filters: Dict[str, Any] = {}
        if actor.role is Role.CUSTOMER:
            filters["customer_id"] = actor.user_id
        elif actor.role is Role.BARBER:
            filters["barber_id"] = actor.user_id
        elif actor.role is Role.MANAGER:
            filters["salon_ids"] = list(actor.managed_salon_ids)

        if date_from is not None:
            filters["date_from"] = parse_date(date_from).isoformat()
        if status is not None:
            filters["status"] = _parse_status(status)

        async with connect(self.db_path) as db:
            return await AppointmentRepository.list_appointments(db, **filters)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @as_result
    async def create_appointment(
        self,
        actor: Actor,
        customer_id: int,
        barber_id: int,
        service_id: int,
        salon_id: int,
        day: Union[str, date],
        start_time: str,
        end_time: Optional[str] = None,
    ) -> Appointment:
        """CreateAppointment: a pending reservation"""
        if not authorization.can_create_for(actor, customer_id, barber_id, salon_id):
            raise ForbiddenError("Not authorized to book this appointment.")

        appointment = await self._book(
            customer_id, barber_id, service_id, salon_id, day, start_time, end_time
        )
        logging.info(
            f"Appointment {appointment.id} created: barber {barber_id} "
            f"{appointment.date} {appointment.start_time}-{appointment.end_time}"
        )
        await self.notifications.notify_created(appointment)
        return appointment

    @as_result
    async def create_walk_in(
        self,
        actor: Actor,
        customer_id: int,
        barber_id: int,
        service_id: int,
        salon_id: int,
        day: Union[str, date],
        start_time: str,
        end_time: Optional[str] = None,
        estimated_wait_time: Optional[int] = None,
    ) -> Appointment:
        """Walk-in created at the desk by the barber or a manager"""
        if not authorization.can_create_walk_in(actor, barber_id, salon_id):
            raise ForbiddenError("Not authorized to register this walk-in.")
        if estimated_wait_time is not None and estimated_wait_time < 0:
            raise ValidationError("Estimated wait time cannot be negative.")

        appointment = await self._book(
            customer_id,
            barber_id,
            service_id,
            salon_id,
            day,
            start_time,
            end_time,
            walk_in=True,
            estimated_wait_time=estimated_wait_time,
        )
        logging.info(
            f"Walk-in {appointment.id} queued as #{appointment.queue_number} "
            f"in salon {salon_id} on {appointment.date}"
        )
        await self.notifications.notify_created(appointment)
        return appointment

    async def _book(
        self,
        customer_id: int,
        barber_id: int,
        service_id: int,
        salon_id: int,
        day: Union[str, date],
        start_time: str,
        end_time: Optional[str],
        walk_in: bool = False,
        estimated_wait_time: Optional[int] = None,
    ) -> Appointment:
        if not all((customer_id, barber_id, service_id, salon_id, start_time)):
            raise ValidationError("Please provide customer, barber, service, salon, date and time.")
        date_str = parse_date(day).isoformat()
        start_minutes = parse_time_to_minutes(start_time)

        async with write_transaction(self.db_path) as db:
            service = await self._check_references(db, customer_id, barber_id, service_id, salon_id)

            if end_time is None:
                end_time = minutes_to_time(
                    start_minutes + round_up_to_grid(service.duration_minutes)
                )
            await self._check_schedule(db, barber_id, salon_id, date_str, start_time, end_time)
            await ensure_no_conflict(db, barber_id, date_str, start_time, end_time)

            appointment = Appointment(
                id=None,
                customer_id=customer_id,
                barber_id=barber_id,
                service_id=service_id,
                salon_id=salon_id,
                date=date_str,
                start_time=start_time,
                end_time=end_time,
                price=service.price,
                created_at=now_local().isoformat(),
            )
            if walk_in:
                appointment.is_walk_in = True
                appointment.queue_number = await AppointmentRepository.next_queue_number(
                    db, salon_id, date_str
                )
                if estimated_wait_time is None:
                    estimated_wait_time = await self._queued_minutes(db, barber_id, date_str)
                appointment.estimated_wait_time = estimated_wait_time

            try:
                appointment_id = await AppointmentRepository.insert(db, appointment)
            except aiosqlite.IntegrityError as e:
                logging.warning(f"Integrity error creating appointment: {e}")
                raise SlotConflictError()

            return await AppointmentRepository.get_by_id(db, appointment_id)

    async def _check_references(
        self,
        db: aiosqlite.Connection,
        customer_id: int,
        barber_id: int,
        service_id: int,
        salon_id: int,
    ):
        customer = await UserRepository.get_user(db, customer_id)
        if customer is None or not customer.is_active:
            raise NotFoundError("Customer not found.")
        if await UserRepository.get_active_barber(db, barber_id) is None:
            raise NotFoundError("Barber not found or inactive.")

        service = await CatalogRepository.get_service(db, service_id)
        if service is None or not service.is_active:
            raise NotFoundError("Service not found.")

        salon = await CatalogRepository.get_salon(db, salon_id)
        if salon is None or not salon.is_active:
            raise NotFoundError("Salon not found.")
        if salon.staff_ids and barber_id not in salon.staff_ids:
            raise ValidationError("This barber does not work at the selected salon.")
        return service

    async def _check_schedule(
        self,
        db: aiosqlite.Connection,
        barber_id: int,
        salon_id: int,
        date_str: str,
        start_time: str,
        end_time: str,
    ):
        start, end = validate_time_range(start_time, end_time)
        window = await resolve_work_window(db, barber_id, salon_id, parse_date(date_str))
        if not window.is_open:
            day_name = DAY_NAMES[weekday_index(parse_date(date_str))]
            raise ValidationError(
                f"The barber is not available on {day_name} {date_str} ({window.reason})."
            )
        if not window.contains(start, end):
            raise ValidationError(
                f"Requested time is outside working hours "
                f"({minutes_to_time(window.start)}-{minutes_to_time(window.end)})."
            )

    async def _queued_minutes(self, db: aiosqlite.Connection, barber_id: int, date_str: str) -> int:
        """Total duration of walk-ins still waiting for this barber"""
        active = await AppointmentRepository.find_active_for_barber_day(db, barber_id, date_str)
        return sum(
            parse_time_to_minutes(a.end_time) - parse_time_to_minutes(a.start_time)
            for a in active
            if a.is_walk_in and a.status in OPEN_STATUSES
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _load(self, db: aiosqlite.Connection, appointment_id: int) -> Appointment:
        appointment = await AppointmentRepository.get_by_id(db, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found.")
        return appointment

    def _status_fields(
        self,
        actor: Actor,
        appointment: Appointment,
        target: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Authorize and validate one status move; returns the columns it sets"""
        if target is AppointmentStatus.EMERGENCY_CANCELLED:
            raise ForbiddenError("Emergency cancellation is only available as a bulk action.")

        guard = STATUS_GUARDS.get(target, authorization.can_update)
        if not guard(actor, appointment):
            raise ForbiddenError(f"Not authorized to mark this appointment {target.value}.")
        ensure_transition(appointment.status, target)

        fields: Dict[str, Any] = {"status": target}
        if target is AppointmentStatus.CANCELLED:
            fields["cancelled_by"] = authorization.cancelled_by_for(actor)
            fields["cancellation_time"] = now_local().isoformat()
            if reason:
                fields["cancellation_reason"] = reason
        elif target in (AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
            fields["completed_by"] = authorization.completed_by_for(actor)
        return fields

    async def _transition(
        self,
        appointment_id: int,
        actor: Actor,
        target: AppointmentStatus,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        products_used: Optional[Iterable[Any]] = None,
    ) -> Appointment:
        async with write_transaction(self.db_path) as db:
            appointment = await self._load(db, appointment_id)
            fields = self._status_fields(actor, appointment, target, reason)
            if notes:
                fields["notes"] = notes
            if products_used is not None:
                fields["products_used"] = _parse_products(products_used)

            await AppointmentRepository.update_fields(db, appointment_id, fields)
            updated = await self._load(db, appointment_id)

        logging.info(
            f"Appointment {appointment_id}: {appointment.status.value} -> {target.value} "
            f"by {actor.role.value} {actor.user_id}"
        )
        await self.notifications.notify_updated(updated, appointment.status)
        return updated

    @as_result
    async def confirm_appointment(self, appointment_id: int, actor: Actor) -> Appointment:
        return await self._transition(appointment_id, actor, AppointmentStatus.CONFIRMED)

    @as_result
    async def cancel_appointment(
        self, appointment_id: int, actor: Actor, reason: Optional[str] = None
    ) -> None:
        """CancelAppointment: acknowledged without a body"""
        await self._transition(appointment_id, actor, AppointmentStatus.CANCELLED, reason=reason)

    @as_result
    async def complete_appointment(
        self,
        appointment_id: int,
        actor: Actor,
        notes: Optional[str] = None,
        products_used: Optional[Iterable[Any]] = None,
    ) -> Appointment:
        return await self._transition(
            appointment_id,
            actor,
            AppointmentStatus.COMPLETED,
            notes=notes,
            products_used=products_used,
        )

    @as_result
    async def mark_no_show(self, appointment_id: int, actor: Actor) -> Appointment:
        return await self._transition(appointment_id, actor, AppointmentStatus.NO_SHOW)

    @as_result
    async def update_appointment(
        self, appointment_id: int, actor: Actor, patch: Dict[str, Any]
    ) -> Appointment:
        """UpdateAppointment: status, schedule and free-form fields

        Schedule changes are re-validated against the barber's other
        appointments, excluding this one.
        """
        unknown = set(patch) - PATCH_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}.")
        if not patch:
            raise ValidationError("Nothing to update.")

        async with write_transaction(self.db_path) as db:
            appointment = await self._load(db, appointment_id)
            if not authorization.can_update(actor, appointment):
                raise ForbiddenError("Not authorized to update this appointment.")

            fields: Dict[str, Any] = {}
            if patch.get("status") is not None:
                target = _parse_status(patch["status"])
                # Repeating the current open status is not a status change
                if not (target is appointment.status and target in OPEN_STATUSES):
                    fields.update(self._status_fields(actor, appointment, target))
            if SCHEDULE_FIELDS & set(patch):
                fields.update(await self._reschedule_fields(db, appointment, patch))
            fields.update(self._detail_fields(actor, appointment, patch))

            try:
                await AppointmentRepository.update_fields(db, appointment_id, fields)
            except aiosqlite.IntegrityError as e:
                logging.warning(f"Integrity error updating appointment {appointment_id}: {e}")
                raise SlotConflictError()
            updated = await self._load(db, appointment_id)

        if "status" in fields or SCHEDULE_FIELDS & set(fields):
            logging.info(f"Appointment {appointment_id} updated by {actor.role.value} {actor.user_id}")
            await self.notifications.notify_updated(updated, appointment.status)
        return updated

    async def _reschedule_fields(
        self, db: aiosqlite.Connection, appointment: Appointment, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        ensure_reschedulable(appointment.status)

        barber_id = patch.get("barber_id") or appointment.barber_id
        if barber_id != appointment.barber_id:
            if await UserRepository.get_active_barber(db, barber_id) is None:
                raise NotFoundError("Barber not found or inactive.")
            salon = await CatalogRepository.get_salon(db, appointment.salon_id)
            if salon is not None and salon.staff_ids and barber_id not in salon.staff_ids:
                raise ValidationError("This barber does not work at the selected salon.")

        date_str = parse_date(patch.get("date") or appointment.date).isoformat()
        start_time = patch.get("start_time") or appointment.start_time
        end_time = patch.get("end_time")
        if not end_time:
            if "start_time" in patch:
                # Keep the booked duration when only the start moves
                duration = parse_time_to_minutes(appointment.end_time) - parse_time_to_minutes(
                    appointment.start_time
                )
                end_time = minutes_to_time(parse_time_to_minutes(start_time) + duration)
            else:
                end_time = appointment.end_time

        await self._check_schedule(db, barber_id, appointment.salon_id, date_str, start_time, end_time)
        await ensure_no_conflict(
            db, barber_id, date_str, start_time, end_time, exclude_appointment_id=appointment.id
        )
        return {
            "barber_id": barber_id,
            "date": date_str,
            "start_time": start_time,
            "end_time": end_time,
        }

    def _detail_fields(
        self, actor: Actor, appointment: Appointment, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Free-form fields, settable in any status"""
        fields: Dict[str, Any] = {}
        if "notes" in patch:
            fields["notes"] = patch["notes"]

        if "rating" in patch or "review" in patch:
            if not authorization.can_review(actor, appointment):
                raise ForbiddenError("Only the customer can rate this appointment.")
            if "rating" in patch:
                rating = patch["rating"]
                if rating is not None and (
                    not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5
                ):
                    raise ValidationError("Rating must be a whole number from 1 to 5.")
                fields["rating"] = rating
            if "review" in patch:
                fields["review"] = patch["review"]

        if "is_paid" in patch:
            fields["is_paid"] = bool(patch["is_paid"])
        if patch.get("payment_method") is not None:
            try:
                fields["payment_method"] = PaymentMethod(patch["payment_method"])
            except ValueError:
                raise ValidationError(f"Unknown payment method '{patch['payment_method']}'.")
        return fields

    # ------------------------------------------------------------------
    # Emergency protocol
    # ------------------------------------------------------------------

    @as_result
    async def emergency_cancel_barber(
        self, barber_id: int, actor: Actor, reason: str
    ) -> EmergencyCancelResult:
        """Cancel all of a barber's open appointments from today onwards

        Snapshot, transition and notify are separate phases; the notified set
        is exactly the snapshot that was transitioned.
        """
        if not reason or not reason.strip():
            raise ValidationError("Please provide a reason for the emergency cancellation.")
        reason = reason.strip()

        async with write_transaction(self.db_path) as db:
            barber = await UserRepository.get_user(db, barber_id)
            if barber is None or barber.role is not Role.BARBER:
                raise NotFoundError("Barber not found.")
            salon_ids = await CatalogRepository.get_barber_salon_ids(db, barber_id)
            if not authorization.can_emergency_cancel(actor, salon_ids):
                raise ForbiddenError("Only managers of this barber's salon or admins can do this.")

            # Phase 1: snapshot under the write lock
            snapshot = await AppointmentRepository.find_emergency_snapshot(
                db, barber_id, today_local().isoformat()
            )
            ids = [a.id for a in snapshot]

            # Phase 2: transition exactly the snapshot
            cancellation_time = now_local().isoformat()
            updated = await AppointmentRepository.mark_emergency_cancelled(
                db, ids, reason, cancellation_time
            )
            if updated != len(ids):
                raise InternalError("Appointments changed during emergency cancellation.")

        cancelled = [
            replace(
                a,
                status=AppointmentStatus.EMERGENCY_CANCELLED,
                cancellation_reason=reason,
                cancelled_by=CancelledBy.SYSTEM,
                cancellation_time=cancellation_time,
                is_emergency=True,
                emergency_details=reason,
            )
            for a in snapshot
        ]
        logging.info(
            f"Emergency cancellation for barber {barber_id} by {actor.role.value} "
            f"{actor.user_id}: {len(ids)} appointments"
        )

        # Phase 3: notify from the same snapshot
        await self.notifications.notify_emergency(barber_id, barber.name, reason, cancelled)
        return EmergencyCancelResult(cancelled_count=len(ids), cancelled_appointment_ids=ids)
