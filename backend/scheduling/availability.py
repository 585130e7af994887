"""Weekly availability template helpers."""

import re
from dataclasses import dataclass
from datetime import date

from backend.scheduling.errors import InvalidInputError

DEFAULT_START_TIME = '09:00'
DEFAULT_END_TIME = '19:00'
DAYS_PER_WEEK = 7

_TIME_OF_DAY = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


@dataclass(frozen=True)
class AvailabilityWindow:
    day_of_week: int  # 0 = Sunday, 6 = Saturday
    start_time: str
    end_time: str
    is_available: bool = True


def default_availability() -> list[AvailabilityWindow]:
    return [
        AvailabilityWindow(day, DEFAULT_START_TIME, DEFAULT_END_TIME, True)
        for day in range(DAYS_PER_WEEK)
    ]


def parse_time_of_day(value: str) -> int:
    """Return minutes since midnight for an ``HH:mm`` string."""
    match = _TIME_OF_DAY.match(value or '')
    if not match:
        raise InvalidInputError('MALFORMED_TIME', f'Time must be HH:mm (24h), got {value!r}.')
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time_of_day(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def day_of_week(value: date) -> int:
    return value.isoweekday() % 7


def validate_template(windows: list[AvailabilityWindow]) -> list[AvailabilityWindow]:
    if len(windows) != DAYS_PER_WEEK:
        raise InvalidInputError('INVALID_TEMPLATE', 'Availability must cover all 7 days of the week.')

    days = sorted(window.day_of_week for window in windows)
    if days != list(range(DAYS_PER_WEEK)):
        raise InvalidInputError('INVALID_TEMPLATE', 'Each day of the week (0-6) must appear exactly once.')

    for window in windows:
        start = parse_time_of_day(window.start_time)
        end = parse_time_of_day(window.end_time)
        if window.is_available and start >= end:
            raise InvalidInputError(
                'INVALID_TEMPLATE',
                f'Start time must be before end time on day {window.day_of_week}.',
            )

    return sorted(windows, key=lambda window: window.day_of_week)
