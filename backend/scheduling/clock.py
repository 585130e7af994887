from datetime import datetime


class SystemClock:
    """Naive local wall clock, matching the stored naive dates."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now
