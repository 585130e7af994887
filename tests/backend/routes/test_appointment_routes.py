from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.routes.appointment_routes import (
    CancelAppointmentRequest,
    CompleteAppointmentRequest,
    CreateAppointmentRequest,
    PrescriptionRequest,
    UpdateStatusRequest,
    appointment_stats,
    cancel_appointment,
    complete_appointment,
    create_appointment,
    create_prescription,
    get_appointment,
    list_appointment_types,
    list_appointments,
    update_appointment_status,
)

NEXT_WEDNESDAY = date(2026, 1, 7)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.appointment_routes.ensure_database_ready', lambda: None)


def _request(doctor, time_slot: str = '09:00') -> CreateAppointmentRequest:
    return CreateAppointmentRequest(
        doctor_id=doctor.id,
        date=NEXT_WEDNESDAY,
        time_slot=time_slot,
        appointment_type='General Checkup',
        symptoms=' Headache ',
    )


def _book(service, doctor, patient_actor, time_slot: str = '09:00'):
    return create_appointment(data=_request(doctor, time_slot), actor=patient_actor, service=service)


def test_list_appointment_types() -> None:
    assert list_appointment_types() == ['General Checkup', 'Follow-up', 'Consultation', 'Emergency']


def test_create_appointment_request_normalizes_fields() -> None:
    request = CreateAppointmentRequest(
        doctor_id=1,
        date=NEXT_WEDNESDAY,
        time_slot=' 09:30 ',
        appointment_type=' Follow-up ',
        notes='   ',
    )

    assert request.time_slot == '09:30'
    assert request.appointment_type == 'Follow-up'
    assert request.notes is None


@pytest.mark.parametrize(
    'overrides',
    [
        {'appointment_type': 'Surgery'},
        {'time_slot': '   '},
        {'notes': 'x' * 601},
        {'date': 'yesterday'},
    ],
)
def test_create_appointment_request_rejects_invalid_fields(overrides: dict) -> None:
    payload = {
        'doctor_id': 1,
        'date': NEXT_WEDNESDAY,
        'time_slot': '09:00',
        'appointment_type': 'Consultation',
        **overrides,
    }

    with pytest.raises(ValidationError):
        CreateAppointmentRequest(**payload)


def test_create_appointment_books_pending_slot(service, doctor, patient_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    assert appointment.status == 'pending'
    assert appointment.patient_id == patient_actor.actor_id
    assert appointment.symptoms == 'Headache'


def test_create_appointment_only_for_patients(service, doctor, doctor_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_appointment(data=_request(doctor), actor=doctor_actor, service=service)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only patients can create appointments.'


def test_create_appointment_conflict_returns_409(service, doctor, patient_actor, other_patient_actor) -> None:
    _book(service, doctor, patient_actor)

    with pytest.raises(HTTPException) as exception_info:
        _book(service, doctor, other_patient_actor)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['code'] == 'SLOT_TAKEN'


def test_create_appointment_outside_hours_returns_400(service, doctor, patient_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(service, doctor, patient_actor, '10:00')

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['code'] == 'OUTSIDE_WORKING_HOURS'


def test_cancel_without_reason_returns_400(service, doctor, patient_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(
            appointment_id=appointment.id,
            data=CancelAppointmentRequest(reason='  '),
            actor=patient_actor,
            service=service,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['code'] == 'REASON_REQUIRED'


def test_cancel_missing_appointment_returns_404(service, patient_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(
            appointment_id=999,
            data=CancelAppointmentRequest(reason='Gone'),
            actor=patient_actor,
            service=service,
        )

    assert exception_info.value.status_code == 404


def test_cancel_by_other_patient_returns_403(service, doctor, patient_actor, other_patient_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(
            appointment_id=appointment.id,
            data=CancelAppointmentRequest(reason='Not mine'),
            actor=other_patient_actor,
            service=service,
        )

    assert exception_info.value.status_code == 403


def test_cancel_twice_returns_409(service, doctor, patient_actor) -> None:
    appointment = _book(service, doctor, patient_actor)
    data = CancelAppointmentRequest(reason='Travelling')
    cancelled = cancel_appointment(appointment_id=appointment.id, data=data, actor=patient_actor, service=service)

    assert cancelled.cancelled_by == 'patient'
    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(appointment_id=appointment.id, data=data, actor=patient_actor, service=service)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['code'] == 'STALE_TRANSITION'


def test_update_status_normalizes_and_applies(service, doctor, patient_actor, admin_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    updated = update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateStatusRequest(status=' Confirmed '),
        actor=admin_actor,
        service=service,
    )

    assert updated.status == 'confirmed'


def test_update_status_unknown_value_returns_400(service, doctor, patient_actor, admin_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    with pytest.raises(HTTPException) as exception_info:
        update_appointment_status(
            appointment_id=appointment.id,
            data=UpdateStatusRequest(status='archived'),
            actor=admin_actor,
            service=service,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['code'] == 'UNKNOWN_STATUS'


def test_complete_with_prescription(service, doctor, patient_actor, doctor_actor) -> None:
    appointment = _book(service, doctor, patient_actor)
    update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateStatusRequest(status='confirmed'),
        actor=doctor_actor,
        service=service,
    )

    response = complete_appointment(
        appointment_id=appointment.id,
        data=CompleteAppointmentRequest(
            prescription=PrescriptionRequest(
                diagnosis='Migraine',
                medicines=[{'name': 'Ibuprofen', 'dosage': '200mg', 'frequency': 'BID', 'duration': '3 days'}],
            )
        ),
        actor=doctor_actor,
        service=service,
    )

    assert response.appointment.status == 'completed'
    assert response.prescription.diagnosis == 'Migraine'
    assert response.prescription.medicines[0].name == 'Ibuprofen'
    assert response.prescription_error is None


def test_complete_without_body(service, doctor, patient_actor, doctor_actor) -> None:
    appointment = _book(service, doctor, patient_actor)
    update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateStatusRequest(status='confirmed'),
        actor=doctor_actor,
        service=service,
    )

    response = complete_appointment(appointment_id=appointment.id, actor=doctor_actor, service=service)

    assert response.appointment.status == 'completed'
    assert response.prescription is None
    assert response.prescription_error is None


def test_complete_pending_returns_409(service, doctor, patient_actor, doctor_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    with pytest.raises(HTTPException) as exception_info:
        complete_appointment(
            appointment_id=appointment.id,
            data=CompleteAppointmentRequest(),
            actor=doctor_actor,
            service=service,
        )

    assert exception_info.value.status_code == 409


def test_prescription_request_requires_diagnosis() -> None:
    with pytest.raises(ValidationError):
        PrescriptionRequest(diagnosis='   ')


def test_create_prescription_requires_completed_appointment(service, doctor, patient_actor, doctor_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    with pytest.raises(HTTPException) as exception_info:
        create_prescription(
            appointment_id=appointment.id,
            data=PrescriptionRequest(diagnosis='Cold'),
            actor=doctor_actor,
            service=service,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['code'] == 'NOT_COMPLETED'


def test_list_and_get_appointments_for_patient(service, doctor, patient_actor, other_patient_actor) -> None:
    appointment = _book(service, doctor, patient_actor)

    assert [item.id for item in list_appointments(actor=patient_actor, service=service)] == [appointment.id]
    assert list_appointments(actor=other_patient_actor, service=service) == []
    assert get_appointment(appointment_id=appointment.id, actor=patient_actor, service=service).id == appointment.id

    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=appointment.id, actor=other_patient_actor, service=service)

    assert exception_info.value.status_code == 403


def test_appointment_stats_for_doctor(service, doctor, patient_actor, doctor_actor) -> None:
    _book(service, doctor, patient_actor, '09:00')
    _book(service, doctor, patient_actor, '09:30')

    assert appointment_stats(actor=doctor_actor, service=service) == {
        'pending': 2,
        'confirmed': 0,
        'completed': 0,
        'cancelled': 0,
    }
