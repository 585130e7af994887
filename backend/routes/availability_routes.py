from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError

from backend.auth.dependencies import get_current_actor, get_current_user
from backend.models.user import User
from backend.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_scheduling_service,
    to_http_exception,
)
from backend.scheduling.availability import AvailabilityWindow, parse_time_of_day
from backend.scheduling.errors import InvalidInputError, SchedulingError
from backend.scheduling.service import SchedulingService
from backend.scheduling.slots import SLOT_MINUTES, SLOT_REASON_MESSAGES
from backend.scheduling.state_machine import Actor

router = APIRouter(tags=['availability'])


class AvailabilityWindowModel(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_of_day(cls, value: str) -> str:
        normalized = value.strip()
        try:
            parse_time_of_day(normalized)
        except InvalidInputError as exc:
            raise ValueError(exc.message) from exc
        return normalized

    class Config:
        from_attributes = True


class UpdateAvailabilityRequest(BaseModel):
    availability: list[AvailabilityWindowModel]


class CreateDoctorProfileRequest(BaseModel):
    specialization: str

    @field_validator('specialization')
    @classmethod
    def validate_specialization(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Specialization is required.')
        return normalized


class DoctorApprovalRequest(BaseModel):
    is_approved: bool


class DoctorResponse(BaseModel):
    id: int
    user_id: int
    specialization: str | None = None
    is_approved: bool
    status: str

    class Config:
        from_attributes = True


class AvailableSlotsResponse(BaseModel):
    date: date
    slot_minutes: int = SLOT_MINUTES
    available_slots: list[str]
    reason: str | None = None
    message: str | None = None


@router.get('/{doctor_id}/availability', response_model=list[AvailabilityWindowModel])
def get_doctor_availability(doctor_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    ensure_database_ready()

    try:
        return service.get_availability(doctor_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/availability', response_model=list[AvailabilityWindowModel])
def update_doctor_availability(
    data: UpdateAvailabilityRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    windows = [
        AvailabilityWindow(
            day_of_week=window.day_of_week,
            start_time=window.start_time,
            end_time=window.end_time,
            is_available=window.is_available,
        )
        for window in data.availability
    ]
    try:
        return service.update_availability(actor, windows)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{doctor_id}/available-slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    doctor_id: int,
    slot_date: date = Query(..., alias='date'),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        listing = service.list_available_slots(doctor_id, slot_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailableSlotsResponse(
        date=slot_date,
        available_slots=listing.slots,
        reason=listing.reason.value if listing.reason else None,
        message=SLOT_REASON_MESSAGES.get(listing.reason) if listing.reason else None,
    )


@router.post('/profile', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor_profile(
    data: CreateDoctorProfileRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.register_doctor(current_user, data.specialization)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{doctor_id}/approval', response_model=DoctorResponse)
def update_doctor_approval(
    doctor_id: int,
    data: DoctorApprovalRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.set_doctor_approval(actor, doctor_id, data.is_approved)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
