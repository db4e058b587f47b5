"""Domain errors raised by the scheduling core.

``ValidationError``, ``ConflictError`` and ``NotFoundError`` abort the
originating write and reach the caller. ``SideEffectError`` is raised inside
outbound adapters only and is caught and logged at the job boundary.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for scheduling errors."""

    code = "scheduling_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(SchedulingError):
    """Malformed time, date or duration input."""

    code = "validation_error"


class InvalidTransitionError(ValidationError):
    """Status change not allowed by the appointment lifecycle."""

    code = "invalid_transition"


class ConflictError(SchedulingError):
    """Requested slot is already taken."""

    code = "slot_taken"


class NotFoundError(SchedulingError):
    """Referenced appointment or service does not exist."""

    code = "not_found"


class SideEffectError(SchedulingError):
    """Email, chat or calendar call failed."""

    code = "side_effect_failed"
