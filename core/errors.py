"""Scheduling error taxonomy.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with, so a client can tell "pick a different date" apart from
"series is cancelled" and "try again".
"""

from __future__ import annotations

from typing import Any


class SchedulingError(Exception):
    code = "SCHEDULING_ERROR"
    status_code = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        detail.update({k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in self.context.items()})
        return detail


class ValidationError(SchedulingError):
    """Malformed recurrence or field values, detected before any write."""

    code = "VALIDATION_ERROR"
    status_code = 422


class SessionNotFound(SchedulingError):
    code = "SESSION_NOT_FOUND"
    status_code = 404


class OccurrenceNotInSeries(SchedulingError):
    """The date is not produced by the template's current recurrence."""

    code = "OCCURRENCE_NOT_IN_SERIES"
    status_code = 404


class SeriesAlreadyCancelled(SchedulingError):
    code = "SERIES_ALREADY_CANCELLED"
    status_code = 409


class ConcurrentModification(SchedulingError):
    """Lock wait on the template row timed out; the caller may retry."""

    code = "CONCURRENT_MODIFICATION"
    status_code = 409


class PersistenceFailure(SchedulingError):
    code = "PERSISTENCE_FAILURE"
    status_code = 503
