"""Enum types mirroring the PostgreSQL custom enums of the booking schema."""

from enum import Enum


class ArchiveReason(str, Enum):
    """Why a booking stopped being active for a candidate."""
    candidate_cancel = "candidate-cancel"
    exam_failed = "exam-failed"
    exam_passed = "exam-passed"
    absent = "absent"
    admin_removed = "admin-removed"
    admin_moved = "admin-moved"
    replaced_by_new_booking = "replaced-by-new-booking"


class NoReussiteReason(str, Enum):
    """Kind of negative practical-exam outcome kept in a candidate history."""
    echec = "echec"
    absent = "absent"


class ExamOutcome(str, Enum):
    """Result of a practical exam as reported by the registry."""
    passed = "passed"
    failed = "failed"
    absent = "absent"


class EligibilityReason(str, Enum):
    """Reason a candidate is not allowed to book."""
    exam_passed = "EXAM_PASSED"
    max_failures_reached = "MAX_FAILURES_REACHED"
    not_validated = "NOT_VALIDATED"
    theory_expired = "THEORY_EXPIRED"
    retry_too_soon = "RETRY_TOO_SOON"


class SlotConflictReason(str, Enum):
    """Outcome of a lost race on a place or on a candidate pointer."""
    slot_already_booked = "SLOT_ALREADY_BOOKED"
    slot_not_found = "SLOT_NOT_FOUND"
    concurrent_booking = "CONCURRENT_BOOKING"


class BookingEventType(str, Enum):
    """Event kinds published to the notification collaborator."""
    booked = "booked"
    cancelled = "cancelled"
    moved = "moved"
    outcome = "outcome"
