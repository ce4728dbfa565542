"""Authorization policy

Pure predicates over (actor, appointment); no storage access. Customers act
on their own appointments, barbers on appointments assigned to them,
managers on appointments in salons they manage, admins on any.
"""

from typing import Iterable

from database.models import Actor, Appointment, CancelledBy, CompletedBy, Role


def _owns(actor: Actor, appointment: Appointment) -> bool:
    if actor.role is Role.CUSTOMER:
        return appointment.customer_id == actor.user_id
    if actor.role is Role.BARBER:
        return appointment.barber_id == actor.user_id
    if actor.role is Role.MANAGER:
        return actor.manages(appointment.salon_id)
    return actor.role is Role.ADMIN


def _is_staff(actor: Actor) -> bool:
    return actor.role in (Role.BARBER, Role.MANAGER, Role.ADMIN)


def can_view(actor: Actor, appointment: Appointment) -> bool:
    return _owns(actor, appointment)


def can_update(actor: Actor, appointment: Appointment) -> bool:
    return _owns(actor, appointment)


def can_confirm(actor: Actor, appointment: Appointment) -> bool:
    return _is_staff(actor) and _owns(actor, appointment)


def can_cancel(actor: Actor, appointment: Appointment) -> bool:
    return _owns(actor, appointment)


def can_complete(actor: Actor, appointment: Appointment) -> bool:
    return _is_staff(actor) and _owns(actor, appointment)


def can_mark_no_show(actor: Actor, appointment: Appointment) -> bool:
    return _is_staff(actor) and _owns(actor, appointment)


def can_review(actor: Actor, appointment: Appointment) -> bool:
    """Rating and review belong to the customer who was served"""
    return actor.role is Role.CUSTOMER and appointment.customer_id == actor.user_id


def can_create_for(actor: Actor, customer_id: int, barber_id: int, salon_id: int) -> bool:
    """Customers book for themselves; staff may book on a customer's behalf"""
    if actor.role is Role.CUSTOMER:
        return customer_id == actor.user_id
    return can_create_walk_in(actor, barber_id, salon_id)


def can_create_walk_in(actor: Actor, barber_id: int, salon_id: int) -> bool:
    if actor.role is Role.BARBER:
        return barber_id == actor.user_id
    if actor.role is Role.MANAGER:
        return actor.manages(salon_id)
    return actor.role is Role.ADMIN


def can_emergency_cancel(actor: Actor, barber_salon_ids: Iterable[int]) -> bool:
    """Managers may act for barbers working in one of their salons"""
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.MANAGER:
        return any(actor.manages(salon_id) for salon_id in barber_salon_ids)
    return False


def cancelled_by_for(actor: Actor) -> CancelledBy:
    if actor.role is Role.CUSTOMER:
        return CancelledBy.CUSTOMER
    if actor.role is Role.BARBER:
        return CancelledBy.BARBER
    return CancelledBy.MANAGER


def completed_by_for(actor: Actor) -> CompletedBy:
    if actor.role is Role.BARBER:
        return CompletedBy.BARBER
    return CompletedBy.MANAGER
