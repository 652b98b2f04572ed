"""Value objects exchanged with the booking orchestrator and its collaborators.

These are API / event schemas, not direct table mappings.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from candilib.models.enums import (
    ArchiveReason,
    BookingEventType,
    EligibilityReason,
    ExamOutcome,
)
from candilib.models.place import Place


class EligibilityVerdict(BaseModel):
    """Result of the eligibility evaluator."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: EligibilityReason | None = None
    message: str | None = None
    can_book_from: datetime | None = None


class BookingEvent(BaseModel):
    """Event consumed by the notification collaborator (mailer)."""
    model_config = ConfigDict(frozen=True)

    candidat_id: UUID
    type: BookingEventType
    place: Place | None = None
    reason: ArchiveReason | None = None
    outcome: ExamOutcome | None = None
    occurred_at: datetime


class BookingResult(BaseModel):
    """Returned by the booking operations to the controller layer."""
    success: bool = True
    message: str
    place: Place | None = None
    archived_reason: ArchiveReason | None = None
    can_book_from: datetime | None = None


class OutcomeRequest(BaseModel):
    outcome: ExamOutcome
    date: datetime


class MoveRequest(BaseModel):
    place_id: UUID


class ActionLogEntry(BaseModel):
    """A candidate request recorded by the action log middleware."""
    candidat_id: str
    method: str
    path: str
    status: str
    requested_at: datetime


class OutcomeCounts(BaseModel):
    """Archived outcomes of one centre over a period."""
    centre_id: UUID
    begin: datetime | None = None
    end: datetime | None = None
    counts: dict[ArchiveReason, int] = {}
