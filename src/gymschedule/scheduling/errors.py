"""Error taxonomy for the scheduling core.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the API
layer can render it without knowing which component raised it.
"""

from typing import Any


class SchedulingError(Exception):
    """Base class for every error the scheduling core raises."""

    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(SchedulingError):
    """Malformed input, detected before any mutation."""

    code = "validation_error"
    status_code = 422


class ConflictError(SchedulingError):
    """Interval overlap or uniqueness violation."""

    code = "conflict"
    status_code = 409


class NotFoundError(SchedulingError):
    code = "not_found"
    status_code = 404


class BusyError(SchedulingError):
    """An active registration depends on the target slot."""

    code = "busy"
    status_code = 409


class PermissionDeniedError(SchedulingError):
    code = "permission_denied"
    status_code = 403


class MembershipExpiredError(SchedulingError):
    code = "membership_expired"


class TrainerUnavailableError(SchedulingError):
    code = "trainer_unavailable"


class ServiceInactiveError(SchedulingError):
    code = "service_inactive"


class SlotUnavailableError(SchedulingError):
    code = "slot_unavailable"


class InvalidDateError(SchedulingError):
    code = "invalid_date"


class IllegalTransitionError(SchedulingError):
    code = "illegal_transition"
    status_code = 409


class PartialSyncError(SchedulingError):
    """Availability changed but the normalized store could not be confirmed.

    Needs an operator to re-run the sync for ``details["trainer_id"]``.
    """

    code = "partial_sync"
    status_code = 500
