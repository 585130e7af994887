"""Storage access for the scheduling core."""

from datetime import date
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.models.doctor import Doctor, DoctorAvailability
from backend.models.prescription import Prescription
from backend.scheduling.availability import AvailabilityWindow, default_availability
from backend.scheduling.errors import DuplicateBookingError, DuplicatePrescriptionError

CANCELLED = 'cancelled'

# Postgres reports the constraint name; SQLite reports the constrained columns.
ACTIVE_SLOT_MARKERS = (
    'uq_appointments_active_slot',
    'appointments.doctor_id, appointments.date, appointments.time_slot',
)
PRESCRIPTION_MARKERS = (
    'prescriptions_appointment_id_key',
    'prescriptions.appointment_id',
)


class SchedulingRepository(Protocol):
    def find_doctor(self, doctor_id: int) -> Doctor | None: ...

    def find_doctor_by_user(self, user_id: int) -> Doctor | None: ...

    def create_doctor(
        self,
        user_id: int,
        specialization: str,
        is_approved: bool = False,
        availability: list[AvailabilityWindow] | None = None,
    ) -> Doctor: ...

    def update_doctor_approval(self, doctor_id: int, is_approved: bool) -> Doctor: ...

    def find_availability_window(self, doctor_id: int, day_of_week: int) -> AvailabilityWindow | None: ...

    def list_availability(self, doctor_id: int) -> list[AvailabilityWindow]: ...

    def replace_availability(self, doctor_id: int, windows: list[AvailabilityWindow]) -> list[AvailabilityWindow]: ...

    def find_non_cancelled_appointment(self, doctor_id: int, day: date, time_slot: str) -> Appointment | None: ...

    def list_booked_slots(self, doctor_id: int, day: date) -> set[str]: ...

    def find_appointment(self, appointment_id: int) -> Appointment | None: ...

    def list_appointments(self, patient_id: int | None = None, doctor_id: int | None = None) -> list[Appointment]: ...

    def count_appointments_by_status(self, doctor_id: int | None = None) -> dict[str, int]: ...

    def insert_appointment(self, record: dict) -> Appointment: ...

    def update_appointment_status(
        self, appointment_id: int, expected_status: str, status: str, extra: dict
    ) -> Appointment | None: ...

    def find_prescription(self, appointment_id: int) -> Prescription | None: ...

    def insert_prescription(self, record: dict) -> Prescription: ...


def _violates(exc: IntegrityError, markers: tuple[str, ...]) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in markers)


def _to_window(row: DoctorAvailability) -> AvailabilityWindow:
    return AvailabilityWindow(
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time,
        is_available=bool(row.is_available),
    )


class SqlAlchemyRepository:
    """Request-scoped repository over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def find_doctor(self, doctor_id: int) -> Doctor | None:
        return self.db.get(Doctor, doctor_id)

    def find_doctor_by_user(self, user_id: int) -> Doctor | None:
        return self.db.query(Doctor).filter(Doctor.user_id == user_id).first()

    def create_doctor(
        self,
        user_id: int,
        specialization: str,
        is_approved: bool = False,
        availability: list[AvailabilityWindow] | None = None,
    ) -> Doctor:
        doctor = Doctor(
            user_id=user_id,
            specialization=specialization,
            is_approved=is_approved,
            status='active' if is_approved else 'inactive',
        )
        for window in availability or default_availability():
            doctor.availability.append(
                DoctorAvailability(
                    day_of_week=window.day_of_week,
                    start_time=window.start_time,
                    end_time=window.end_time,
                    is_available=window.is_available,
                )
            )
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def update_doctor_approval(self, doctor_id: int, is_approved: bool) -> Doctor:
        doctor = self.find_doctor(doctor_id)
        doctor.is_approved = is_approved
        doctor.status = 'active' if is_approved else 'inactive'
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(doctor)
        return doctor

    def find_availability_window(self, doctor_id: int, day_of_week: int) -> AvailabilityWindow | None:
        row = self.db.query(DoctorAvailability).filter(
            DoctorAvailability.doctor_id == doctor_id,
            DoctorAvailability.day_of_week == day_of_week,
        ).first()
        return _to_window(row) if row else None

    def list_availability(self, doctor_id: int) -> list[AvailabilityWindow]:
        rows = self.db.query(DoctorAvailability).filter(
            DoctorAvailability.doctor_id == doctor_id,
        ).order_by(DoctorAvailability.day_of_week.asc()).all()
        return [_to_window(row) for row in rows]

    def replace_availability(self, doctor_id: int, windows: list[AvailabilityWindow]) -> list[AvailabilityWindow]:
        doctor = self.find_doctor(doctor_id)
        try:
            doctor.availability.clear()
            # Flush the deletes first so the per-day unique constraint sees the old rows gone.
            self.db.flush()
            doctor.availability.extend(
                DoctorAvailability(
                    day_of_week=window.day_of_week,
                    start_time=window.start_time,
                    end_time=window.end_time,
                    is_available=window.is_available,
                )
                for window in windows
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return self.list_availability(doctor_id)

    def find_non_cancelled_appointment(self, doctor_id: int, day: date, time_slot: str) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date == day,
            Appointment.time_slot == time_slot,
            Appointment.status != CANCELLED,
        ).first()

    def list_booked_slots(self, doctor_id: int, day: date) -> set[str]:
        rows = self.db.query(Appointment.time_slot).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date == day,
            Appointment.status != CANCELLED,
        ).all()
        return {time_slot for (time_slot,) in rows}

    def find_appointment(self, appointment_id: int) -> Appointment | None:
        return self.db.get(Appointment, appointment_id)

    def list_appointments(self, patient_id: int | None = None, doctor_id: int | None = None) -> list[Appointment]:
        query = self.db.query(Appointment)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        return query.order_by(Appointment.date.desc(), Appointment.time_slot.asc()).all()

    def count_appointments_by_status(self, doctor_id: int | None = None) -> dict[str, int]:
        query = self.db.query(Appointment.status, func.count(Appointment.id))
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        return {status: count for status, count in query.group_by(Appointment.status).all()}

    def insert_appointment(self, record: dict) -> Appointment:
        appointment = Appointment(**record)
        self.db.add(appointment)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not _violates(exc, ACTIVE_SLOT_MARKERS):
                raise
            raise DuplicateBookingError(str(exc.orig)) from exc
        self.db.refresh(appointment)
        return appointment

    def update_appointment_status(
        self, appointment_id: int, expected_status: str, status: str, extra: dict
    ) -> Appointment | None:
        values = {**extra, 'status': status}
        try:
            updated = self.db.query(Appointment).filter(
                Appointment.id == appointment_id,
                Appointment.status == expected_status,
            ).update(values, synchronize_session=False)
            if not updated:
                self.db.rollback()
                return None
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not _violates(exc, ACTIVE_SLOT_MARKERS):
                raise
            raise DuplicateBookingError(str(exc.orig)) from exc

        appointment = self.find_appointment(appointment_id)
        self.db.refresh(appointment)
        return appointment

    def find_prescription(self, appointment_id: int) -> Prescription | None:
        return self.db.query(Prescription).filter(Prescription.appointment_id == appointment_id).first()

    def insert_prescription(self, record: dict) -> Prescription:
        prescription = Prescription(**record)
        self.db.add(prescription)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not _violates(exc, PRESCRIPTION_MARKERS):
                raise
            raise DuplicatePrescriptionError(str(exc.orig)) from exc
        self.db.refresh(prescription)
        return prescription
