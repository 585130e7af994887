"""Scheduling service: slot listing, booking and the appointment lifecycle.

The service is built per request around a repository and a clock. It owns
validation for a single call; durable state, and the uniqueness guarantee
for live bookings, belong to the repository.
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from backend.scheduling import conflicts
from backend.scheduling.availability import AvailabilityWindow, day_of_week, parse_time_of_day, validate_template
from backend.scheduling.clock import SystemClock
from backend.scheduling.errors import (
    ConflictError,
    DuplicateBookingError,
    DuplicatePrescriptionError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    StaleTransitionError,
)
from backend.scheduling.repository import SchedulingRepository
from backend.scheduling.slots import (
    SlotListing,
    SlotReason,
    generate_slots,
    parse_calendar_date,
    slot_fits_window,
    slot_on_grid,
)
from backend.scheduling.state_machine import (
    APPOINTMENT_TYPES,
    ROLE_ADMIN,
    ROLE_DOCTOR,
    ROLE_PATIENT,
    Actor,
    AppointmentStatus,
    is_participant,
    plan_transition,
)

logger = logging.getLogger(__name__)

MEDICINE_FIELDS = ('name', 'dosage', 'frequency', 'duration')


@dataclass
class CompletionResult:
    appointment: object
    prescription: object | None = None
    prescription_error: str | None = None


def _normalize_prescription(prescription: dict) -> dict:
    diagnosis = (prescription.get('diagnosis') or '').strip()
    if not diagnosis:
        raise InvalidInputError('INVALID_PRESCRIPTION', 'Diagnosis is required.')

    medicines = []
    for medicine in prescription.get('medicines') or []:
        missing = [name for name in MEDICINE_FIELDS if not str(medicine.get(name) or '').strip()]
        if missing:
            raise InvalidInputError(
                'INVALID_PRESCRIPTION',
                f"Medicine is missing: {', '.join(missing)}.",
            )
        medicines.append({name: str(medicine[name]).strip() for name in MEDICINE_FIELDS})

    return {
        'diagnosis': diagnosis,
        'medicines': medicines,
        'tests': list(prescription.get('tests') or []),
        'notes': prescription.get('notes') or '',
        'follow_up_date': prescription.get('follow_up_date'),
    }


class SchedulingService:
    def __init__(self, repository: SchedulingRepository, clock=None):
        self.repository = repository
        self.clock = clock or SystemClock()

    def _today(self) -> date:
        return self.clock.now().date()

    def _get_doctor(self, doctor_id: int):
        doctor = self.repository.find_doctor(doctor_id)
        if doctor is None:
            raise NotFoundError('DOCTOR_NOT_FOUND', 'Doctor not found.')
        return doctor

    def _get_appointment(self, appointment_id: int):
        appointment = self.repository.find_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError('NOT_FOUND', 'Appointment not found.')
        return appointment

    # Doctor profiles

    def register_doctor(self, user, specialization: str):
        """Create the doctor profile for a doctor account, with the default weekly template."""
        if user.role != ROLE_DOCTOR:
            raise ForbiddenError('FORBIDDEN', 'Only doctor accounts can have a doctor profile.')
        specialization = (specialization or '').strip()
        if not specialization:
            raise InvalidInputError('INVALID_PROFILE', 'Specialization is required.')
        if self.repository.find_doctor_by_user(user.id) is not None:
            raise ConflictError('DOCTOR_EXISTS', 'Doctor profile already exists.')

        doctor = self.repository.create_doctor(user.id, specialization)
        logger.info('Created doctor profile %s for user %s', doctor.id, user.id)
        return doctor

    def set_doctor_approval(self, actor: Actor, doctor_id: int, is_approved: bool):
        if actor.role != ROLE_ADMIN:
            raise ForbiddenError('FORBIDDEN', 'Only admins can approve doctors.')
        self._get_doctor(doctor_id)

        doctor = self.repository.update_doctor_approval(doctor_id, is_approved)
        logger.info('Doctor %s approval set to %s by admin %s', doctor_id, is_approved, actor.actor_id)
        return doctor

    # Availability

    def get_availability(self, doctor_id: int) -> list[AvailabilityWindow]:
        self._get_doctor(doctor_id)
        return self.repository.list_availability(doctor_id)

    def update_availability(self, actor: Actor, windows: list[AvailabilityWindow]) -> list[AvailabilityWindow]:
        if actor.role != ROLE_DOCTOR or actor.doctor_id is None:
            raise ForbiddenError('FORBIDDEN', 'Only doctors can update their availability.')
        self._get_doctor(actor.doctor_id)

        template = validate_template(list(windows))
        updated = self.repository.replace_availability(actor.doctor_id, template)
        logger.info('Replaced availability template for doctor %s', actor.doctor_id)
        return updated

    # Slots and booking

    def list_available_slots(self, doctor_id: int, target_date) -> SlotListing:
        self._get_doctor(doctor_id)
        target_date = parse_calendar_date(target_date)
        now = self.clock.now()

        window = None
        if target_date >= now.date():
            window = self.repository.find_availability_window(doctor_id, day_of_week(target_date))
        listing = generate_slots(window, target_date, now)
        if not listing.slots:
            return listing

        booked = self.repository.list_booked_slots(doctor_id, target_date)
        remaining = conflicts.subtract_booked(listing.slots, booked)
        if not remaining:
            return SlotListing(reason=SlotReason.FULLY_BOOKED)
        return SlotListing(slots=remaining)

    def book(
        self,
        patient_id: int,
        doctor_id: int,
        target_date,
        time_slot: str,
        appointment_type: str,
        symptoms: str | None = None,
        notes: str | None = None,
    ):
        if appointment_type not in APPOINTMENT_TYPES:
            raise InvalidInputError('UNKNOWN_TYPE', 'Invalid appointment type.')
        target_date = parse_calendar_date(target_date)
        slot_minutes = parse_time_of_day(time_slot)

        doctor = self._get_doctor(doctor_id)
        if not doctor.is_approved:
            raise InvalidInputError('DOCTOR_NOT_APPROVED', 'Doctor is not currently available for appointments.')

        window = self.repository.find_availability_window(doctor_id, day_of_week(target_date))
        if window is None or not window.is_available:
            raise InvalidInputError('DAY_UNAVAILABLE', 'Doctor is not available on this day.')
        if not slot_fits_window(window, time_slot):
            raise InvalidInputError('OUTSIDE_WORKING_HOURS', "Selected time is outside doctor's working hours.")
        if not slot_on_grid(window, time_slot):
            raise InvalidInputError('OFF_GRID_SLOT', 'Selected time does not start a 30-minute slot.')

        now = self.clock.now()
        if target_date < now.date() or (
            target_date == now.date() and slot_minutes <= now.hour * 60 + now.minute
        ):
            raise InvalidInputError('PAST_SLOT', 'Appointments must be scheduled in the future.')

        if conflicts.is_slot_taken(self.repository, doctor_id, target_date, time_slot):
            raise ConflictError('SLOT_TAKEN', 'This time slot is already booked.')

        try:
            appointment = self.repository.insert_appointment({
                'patient_id': patient_id,
                'doctor_id': doctor_id,
                'date': target_date,
                'time_slot': time_slot,
                'appointment_type': appointment_type,
                'symptoms': symptoms or '',
                'notes': notes or '',
                'status': AppointmentStatus.PENDING.value,
            })
        except DuplicateBookingError as exc:
            logger.warning(
                'Rejected concurrent booking for doctor %s on %s at %s', doctor_id, target_date, time_slot
            )
            raise ConflictError('SLOT_TAKEN', 'This time slot is already booked.') from exc

        logger.info(
            'Booked appointment %s for patient %s with doctor %s on %s at %s',
            appointment.id, patient_id, doctor_id, target_date, time_slot,
        )
        return appointment

    # Lifecycle

    def transition_status(
        self,
        actor: Actor,
        appointment_id: int,
        target_status,
        cancellation_reason: str | None = None,
    ):
        appointment = self._get_appointment(appointment_id)
        current_status = appointment.status
        changes = plan_transition(
            appointment,
            actor,
            target_status,
            today=self._today(),
            cancellation_reason=cancellation_reason,
        )
        status = changes.pop('status')

        try:
            updated = self.repository.update_appointment_status(appointment_id, current_status, status, changes)
        except DuplicateBookingError as exc:
            raise ConflictError('SLOT_TAKEN', 'The slot has been booked by another appointment.') from exc
        if updated is None:
            raise StaleTransitionError('CONCURRENT_UPDATE', 'Appointment was modified by another request.')

        logger.info(
            'Appointment %s moved from %s to %s by %s %s',
            appointment_id, current_status, status, actor.role, actor.actor_id,
        )
        return updated

    def cancel(self, actor: Actor, appointment_id: int, reason: str | None):
        return self.transition_status(actor, appointment_id, AppointmentStatus.CANCELLED, cancellation_reason=reason)

    def complete(self, actor: Actor, appointment_id: int, prescription: dict | None = None) -> CompletionResult:
        draft = _normalize_prescription(prescription) if prescription else None
        appointment = self.transition_status(actor, appointment_id, AppointmentStatus.COMPLETED)
        result = CompletionResult(appointment=appointment)
        if draft is None:
            return result

        try:
            result.prescription = self._insert_prescription(appointment, draft)
        except (DuplicatePrescriptionError, SQLAlchemyError) as exc:
            # Completion stays committed; the prescription can be added later.
            logger.exception('Appointment %s completed but prescription creation failed', appointment_id)
            result.prescription_error = str(exc) or exc.__class__.__name__
        return result

    def create_prescription(self, actor: Actor, appointment_id: int, prescription: dict):
        draft = _normalize_prescription(prescription)
        appointment = self._get_appointment(appointment_id)

        if actor.role != ROLE_DOCTOR or not is_participant(appointment, actor):
            raise ForbiddenError('FORBIDDEN', 'Only the treating doctor can write a prescription.')
        if appointment.status != AppointmentStatus.COMPLETED.value:
            raise StaleTransitionError('NOT_COMPLETED', 'Appointment is not completed.')
        if self.repository.find_prescription(appointment_id) is not None:
            raise ConflictError('PRESCRIPTION_EXISTS', 'A prescription already exists for this appointment.')

        try:
            return self._insert_prescription(appointment, draft)
        except DuplicatePrescriptionError as exc:
            raise ConflictError('PRESCRIPTION_EXISTS', 'A prescription already exists for this appointment.') from exc

    def _insert_prescription(self, appointment, draft: dict):
        prescription = self.repository.insert_prescription({
            **draft,
            'appointment_id': appointment.id,
            'patient_id': appointment.patient_id,
            'doctor_id': appointment.doctor_id,
        })
        logger.info('Created prescription %s for appointment %s', prescription.id, appointment.id)
        return prescription

    # Queries

    def get_appointment(self, actor: Actor, appointment_id: int):
        appointment = self._get_appointment(appointment_id)
        if not is_participant(appointment, actor):
            raise ForbiddenError('FORBIDDEN', 'Not authorized to view this appointment.')
        return appointment

    def list_appointments(self, actor: Actor):
        if actor.role == ROLE_PATIENT:
            return self.repository.list_appointments(patient_id=actor.actor_id)
        if actor.role == ROLE_DOCTOR and actor.doctor_id is not None:
            return self.repository.list_appointments(doctor_id=actor.doctor_id)
        if actor.role == ROLE_ADMIN:
            return self.repository.list_appointments()
        raise ForbiddenError('FORBIDDEN', 'Not authorized to view appointments.')

    def appointment_stats(self, actor: Actor) -> dict[str, int]:
        if actor.role == ROLE_ADMIN:
            counts = self.repository.count_appointments_by_status()
        elif actor.role == ROLE_DOCTOR and actor.doctor_id is not None:
            counts = self.repository.count_appointments_by_status(doctor_id=actor.doctor_id)
        else:
            raise ForbiddenError('FORBIDDEN', 'Not authorized to view appointment statistics.')
        return {status.value: counts.get(status.value, 0) for status in AppointmentStatus}
