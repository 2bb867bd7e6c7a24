"""
Structured error taxonomy for the scheduling core.

Every failure the scheduling services raise is one of these classes, so the
API layer (and any other caller) can branch on ``kind`` instead of parsing
messages. Each error carries the appointment ids relevant to it.
"""

from typing import Any, Dict, Iterable, List, Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    kind = "scheduling_error"
    status_code = 500

    def __init__(self, message: str, appointment_ids: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.message = message
        self.appointment_ids: List[str] = list(appointment_ids or [])

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses and logs."""
        return {
            "detail": self.message,
            "type": self.kind,
            "appointment_ids": self.appointment_ids,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, message={self.message!r}, appointment_ids={self.appointment_ids!r})"


class ValidationError(SchedulingError, ValueError):
    """
    Malformed input: bad interval, non-positive duration, missing patient ref.

    Recoverable by the caller correcting input; never retried automatically.
    """

    kind = "validation_error"
    status_code = 400


class ConflictError(SchedulingError):
    """The operation would double-book a resource."""

    kind = "conflict"
    status_code = 409

    @property
    def conflicting_appointment_ids(self) -> List[str]:
        return self.appointment_ids


class InvalidStateError(SchedulingError):
    """Transition not permitted from the appointment's current status."""

    kind = "invalid_state"
    status_code = 409


class NotFoundError(SchedulingError):
    """The referenced appointment does not exist."""

    kind = "not_found"
    status_code = 404


class UnavailableError(SchedulingError):
    """
    Repository or lock timeout/failure.

    Callers may retry with backoff. The core itself never retries, since a
    retried check-then-act without the resource lock would reintroduce the race.
    """

    kind = "unavailable"
    status_code = 503
