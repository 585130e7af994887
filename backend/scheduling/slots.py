"""Derive bookable 30-minute slots from a doctor's availability window."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from backend.scheduling.availability import AvailabilityWindow, format_time_of_day, parse_time_of_day
from backend.scheduling.errors import InvalidInputError

SLOT_MINUTES = 30


class SlotReason(str, Enum):
    PAST_DATE = 'PAST_DATE'
    DAY_UNAVAILABLE = 'DAY_UNAVAILABLE'
    NO_SLOTS_REMAINING = 'NO_SLOTS_REMAINING'
    FULLY_BOOKED = 'FULLY_BOOKED'


SLOT_REASON_MESSAGES = {
    SlotReason.PAST_DATE: 'Cannot book appointments for past dates',
    SlotReason.DAY_UNAVAILABLE: 'Doctor is not available on this day',
    SlotReason.NO_SLOTS_REMAINING: 'No available slots remaining for today',
    SlotReason.FULLY_BOOKED: 'No available slots for this date',
}


@dataclass
class SlotListing:
    slots: list[str] = field(default_factory=list)
    reason: SlotReason | None = None


def parse_calendar_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        # A bare YYYY-MM-DD, or a full ISO timestamp as browsers send it.
        if len(text) == 10:
            return date.fromisoformat(text)
        if 'T' not in text:
            raise ValueError(text)
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError as exc:
        raise InvalidInputError('MALFORMED_DATE', f'Invalid date: {value!r}.') from exc


def window_bounds(window: AvailabilityWindow) -> tuple[int, int]:
    return parse_time_of_day(window.start_time), parse_time_of_day(window.end_time)


def slot_fits_window(window: AvailabilityWindow, time_slot: str) -> bool:
    start, end = window_bounds(window)
    slot = parse_time_of_day(time_slot)
    return start <= slot and slot + SLOT_MINUTES <= end


def slot_on_grid(window: AvailabilityWindow, time_slot: str) -> bool:
    start, _ = window_bounds(window)
    return (parse_time_of_day(time_slot) - start) % SLOT_MINUTES == 0


def generate_slots(window: AvailabilityWindow | None, target_date: date, now: datetime) -> SlotListing:
    if target_date < now.date():
        return SlotListing(reason=SlotReason.PAST_DATE)

    if window is None or not window.is_available:
        return SlotListing(reason=SlotReason.DAY_UNAVAILABLE)

    start, end = window_bounds(window)
    candidates = []
    current = start
    # Half-open [start, end): the last slot must finish by end.
    while current + SLOT_MINUTES <= end:
        candidates.append(current)
        current += SLOT_MINUTES

    if target_date == now.date():
        now_minutes = now.hour * 60 + now.minute
        # A slot starting within the current minute has already begun.
        candidates = [slot for slot in candidates if slot > now_minutes]
        if not candidates:
            return SlotListing(reason=SlotReason.NO_SLOTS_REMAINING)

    if not candidates:
        return SlotListing(reason=SlotReason.DAY_UNAVAILABLE)

    return SlotListing(slots=[format_time_of_day(slot) for slot in candidates])
