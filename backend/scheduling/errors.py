"""Errors raised by the scheduling core.

Every error carries a machine-readable ``code`` so the API layer can tell,
for example, a taken slot apart from a malformed request and offer the
caller alternate slots.
"""


class SchedulingError(Exception):
    code = 'SCHEDULING_ERROR'

    def __init__(self, code: str | None = None, message: str | None = None):
        if code is not None:
            self.code = code
        self.message = message or self.code
        super().__init__(self.message)


class NotFoundError(SchedulingError):
    code = 'NOT_FOUND'


class InvalidInputError(SchedulingError):
    code = 'INVALID_INPUT'


class ForbiddenError(SchedulingError):
    code = 'FORBIDDEN'


class ConflictError(SchedulingError):
    code = 'SLOT_TAKEN'


class StaleTransitionError(SchedulingError):
    code = 'STALE_TRANSITION'


class DuplicateBookingError(Exception):
    """Storage rejected a second live appointment for the same slot."""


class DuplicatePrescriptionError(Exception):
    """Storage rejected a second prescription for the same appointment."""
