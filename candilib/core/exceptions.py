"""Domain exception hierarchy for the booking engine.

Every error carries a stable ``code`` and a user-facing ``message``; the
FastAPI layer maps each class to an HTTP status and never exposes anything
else.
"""

from __future__ import annotations

from datetime import datetime

from candilib.models.enums import EligibilityReason, SlotConflictReason


class CandilibError(Exception):
    """Base class for all booking engine errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_payload(self) -> dict[str, object]:
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(CandilibError):
    """Bad input shape, rejected before touching storage."""

    status_code = 422
    code = "VALIDATION_ERROR"


class EligibilityDenied(CandilibError):
    """The candidate is not allowed to book right now."""

    status_code = 403

    def __init__(
        self,
        reason: EligibilityReason,
        message: str,
        can_book_from: datetime | None = None,
    ) -> None:
        super().__init__(message, code=reason.value)
        self.reason = reason
        self.can_book_from = can_book_from

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.can_book_from is not None:
            payload["canBookFrom"] = self.can_book_from.isoformat()
        return payload


class SlotConflict(CandilibError):
    """Another request won the race for the place or the candidate."""

    status_code = 409

    def __init__(self, reason: SlotConflictReason, message: str) -> None:
        super().__init__(message, code=reason.value)
        self.reason = reason


class NotFound(CandilibError):
    """Candidate, place or centre missing."""

    status_code = 404
    code = "NOT_FOUND"


class StorageFailure(CandilibError):
    """Storage unreachable or rejected the statement.

    On a timeout the statement may still have been applied, so callers that
    chain several writes re-check or undo what they already wrote.
    """

    status_code = 503
    code = "STORAGE_FAILURE"

    def __init__(self, operation: str) -> None:
        super().__init__(
            "Le service est momentanément indisponible, veuillez réessayer."
        )
        self.operation = operation


class CentreInUse(CandilibError):
    """The centre still owns upcoming places and cannot be deactivated."""

    status_code = 409
    code = "CENTRE_HAS_FUTURE_PLACES"
