"""Appointment status lifecycle.

Transitions are looked up in ``TRANSITIONS``; anything not listed there is
rejected as stale. Role and ownership checks live here too, so the table can
be exercised without going through HTTP.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from backend.scheduling.errors import ForbiddenError, InvalidInputError, StaleTransitionError


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'

APPOINTMENT_TYPES = ('General Checkup', 'Follow-up', 'Consultation', 'Emergency')


@dataclass(frozen=True)
class Actor:
    actor_id: int
    role: str
    doctor_id: int | None = None


@dataclass(frozen=True)
class TransitionRule:
    roles: frozenset
    requires_reason: bool = False
    not_in_past: bool = False


TRANSITIONS = {
    (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED): TransitionRule(
        roles=frozenset({ROLE_DOCTOR, ROLE_ADMIN}),
    ),
    (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED): TransitionRule(
        roles=frozenset({ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN}),
        requires_reason=True,
    ),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED): TransitionRule(
        roles=frozenset({ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN}),
        requires_reason=True,
    ),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED): TransitionRule(
        roles=frozenset({ROLE_DOCTOR}),
    ),
    # Admin-only revert of a cancellation, never for a day that has passed.
    (AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED): TransitionRule(
        roles=frozenset({ROLE_ADMIN}),
        not_in_past=True,
    ),
}


def parse_status(value) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError as exc:
        raise InvalidInputError('UNKNOWN_STATUS', f'Invalid status: {value!r}.') from exc


def is_participant(appointment, actor: Actor) -> bool:
    if actor.role == ROLE_ADMIN:
        return True
    if actor.role == ROLE_PATIENT:
        return appointment.patient_id == actor.actor_id
    if actor.role == ROLE_DOCTOR:
        return actor.doctor_id is not None and appointment.doctor_id == actor.doctor_id
    return False


def plan_transition(appointment, actor: Actor, target, *, today: date, cancellation_reason: str | None = None) -> dict:
    """Validate a status change and return the column values to write.

    Raises ForbiddenError when the actor may not touch the appointment or
    may not perform this transition, StaleTransitionError when the move is
    not allowed from the current status, and InvalidInputError when a
    cancellation has no reason.
    """
    target = parse_status(target)
    current = parse_status(appointment.status)

    if not is_participant(appointment, actor):
        raise ForbiddenError('FORBIDDEN', 'Not authorized to update this appointment.')

    rule = TRANSITIONS.get((current, target))
    if rule is None:
        raise StaleTransitionError(
            'STALE_TRANSITION',
            f'Cannot move appointment from {current.value} to {target.value}.',
        )

    if actor.role not in rule.roles:
        raise ForbiddenError(
            'FORBIDDEN',
            f'Role {actor.role!r} cannot move appointment from {current.value} to {target.value}.',
        )

    reason = (cancellation_reason or '').strip()
    if rule.requires_reason and not reason:
        raise InvalidInputError('REASON_REQUIRED', 'Cancellation reason is required.')

    if rule.not_in_past and appointment.date < today:
        raise StaleTransitionError('PAST_APPOINTMENT', 'Cannot restore an appointment dated in the past.')

    changes = {'status': target.value}
    if target == AppointmentStatus.CANCELLED:
        changes['cancellation_reason'] = reason
        changes['cancelled_by'] = actor.role
    elif current == AppointmentStatus.CANCELLED:
        changes['cancellation_reason'] = None
        changes['cancelled_by'] = None

    return changes
