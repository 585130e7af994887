from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError

from backend.auth.dependencies import get_current_actor
from backend.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_scheduling_service,
    to_http_exception,
)
from backend.scheduling.errors import SchedulingError
from backend.scheduling.service import SchedulingService
from backend.scheduling.state_machine import APPOINTMENT_TYPES, ROLE_PATIENT, Actor

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    date: date
    time_slot: str
    appointment_type: str
    symptoms: str | None = None
    notes: str | None = None

    @field_validator('time_slot')
    @classmethod
    def validate_time_slot(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Time slot is required.')
        return normalized

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        normalized = value.strip()
        if normalized not in APPOINTMENT_TYPES:
            raise ValueError('Invalid appointment type.')
        return normalized

    @field_validator('symptoms', 'notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        normalized = _strip_optional(value)
        if normalized and len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return normalized


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class UpdateStatusRequest(BaseModel):
    status: str
    cancellation_reason: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('cancellation_reason')
    @classmethod
    def validate_cancellation_reason(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class MedicineRequest(BaseModel):
    name: str
    dosage: str
    frequency: str
    duration: str

    @field_validator('name', 'dosage', 'frequency', 'duration')
    @classmethod
    def validate_required(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Medicine name, dosage, frequency and duration are required.')
        return normalized


class PrescriptionRequest(BaseModel):
    diagnosis: str
    medicines: list[MedicineRequest] = []
    tests: list[str] = []
    notes: str | None = None
    follow_up_date: date | None = None

    @field_validator('diagnosis')
    @classmethod
    def validate_diagnosis(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Diagnosis is required.')
        return normalized


class CompleteAppointmentRequest(BaseModel):
    prescription: PrescriptionRequest | None = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    date: date
    time_slot: str
    appointment_type: str
    status: str
    symptoms: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PrescriptionResponse(BaseModel):
    id: int
    appointment_id: int
    patient_id: int
    doctor_id: int
    diagnosis: str
    medicines: list[MedicineRequest]
    tests: list[str]
    notes: str | None = None
    follow_up_date: date | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CompleteAppointmentResponse(BaseModel):
    message: str
    appointment: AppointmentResponse
    prescription: PrescriptionResponse | None = None
    prescription_error: str | None = None


class AppointmentStatsResponse(BaseModel):
    pending: int
    confirmed: int
    completed: int
    cancelled: int


@router.get('/appointment-types', response_model=list[str])
def list_appointment_types():
    return list(APPOINTMENT_TYPES)


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    if actor.role != ROLE_PATIENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only patients can create appointments.',
        )

    ensure_database_ready()

    try:
        return service.book(
            patient_id=actor.actor_id,
            doctor_id=data.doctor_id,
            target_date=data.date,
            time_slot=data.time_slot,
            appointment_type=data.appointment_type,
            symptoms=data.symptoms,
            notes=data.notes,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.list_appointments(actor)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/stats/overview', response_model=AppointmentStatsResponse)
def appointment_stats(
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.appointment_stats(actor)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.get_appointment(actor, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.cancel(actor, appointment_id, data.reason)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.transition_status(
            actor,
            appointment_id,
            data.status,
            cancellation_reason=data.cancellation_reason,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/complete', response_model=CompleteAppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    prescription = data.prescription.model_dump() if data and data.prescription else None
    try:
        result = service.complete(actor, appointment_id, prescription)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return CompleteAppointmentResponse(
        message='Appointment completed successfully',
        appointment=AppointmentResponse.model_validate(result.appointment),
        prescription=PrescriptionResponse.model_validate(result.prescription) if result.prescription else None,
        prescription_error=result.prescription_error,
    )


@router.post(
    '/{appointment_id}/prescription',
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_prescription(
    appointment_id: int,
    data: PrescriptionRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.create_prescription(actor, appointment_id, data.model_dump())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
