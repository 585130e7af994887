"""Booking conflict checks against persisted appointments.

These checks are an optimistic fast path only. The partial unique index
``uq_appointments_active_slot`` is what actually rejects a double booking.
"""

from datetime import date


def is_slot_taken(repository, doctor_id: int, day: date, time_slot: str) -> bool:
    return repository.find_non_cancelled_appointment(doctor_id, day, time_slot) is not None


def subtract_booked(slots: list[str], booked: set[str]) -> list[str]:
    return [slot for slot in slots if slot not in booked]
