"""Booking orchestrator.

Coordinates candidate and place mutations for book / cancel / move / exam
outcome.  Ordering rules that keep the at-most-one-booking invariant without
in-process locks:

* a new place is always reserved *before* the previous booking is torn down,
  so a lost race leaves the candidate's previous booking untouched;
* the candidate pointer moves with a compare-and-set; when it loses, the new
  reservation is released again;
* whoever successfully releases a held place writes its archive entry, so a
  booking is archived exactly once even when two requests end it together.

Every write except the archive entry has a conditional inverse.  An inverse
is registered once its write applied or may have applied (a timeout), and
the inverses are replayed newest first when a later step raises
``StorageFailure``.  The archive entry is always the last write, so an
operation either commits whole or is rolled back.

Conflicts are raised to the caller and never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from uuid import UUID

from candilib.core import clock
from candilib.core.config import Settings, settings as default_settings
from candilib.core.constants import (
    CANCEL_RESA_OK,
    CONCURRENT_BOOKING,
    MODIFY_THEN_CAN_BOOK_AFTER,
    MOVE_RESA_OK,
    NO_RESA_TO_CANCEL,
    NO_RESA_TO_MOVE,
    OUTCOME_ABSENT_OK,
    OUTCOME_FAILED_OK,
    OUTCOME_PASSED_OK,
    PLACE_IS_NOT_BOOKED,
    PLACE_NOT_FOUND,
    SAME_RESA_ASKED,
    SAVE_RESA_OK,
)
from candilib.core.exceptions import (
    NotFound,
    SlotConflict,
    StorageFailure,
    ValidationError,
)
from candilib.models.booking import BookingEvent, BookingResult, EligibilityVerdict
from candilib.models.candidat import Candidat, NoReussite
from candilib.models.enums import (
    ArchiveReason,
    BookingEventType,
    ExamOutcome,
    NoReussiteReason,
    SlotConflictReason,
)
from candilib.models.place import FreePlaceCriteria, Place
from candilib.services import archive, candidats, eligibility, places
from candilib.services.notifications import dispatcher

logger = logging.getLogger(__name__)

_OUTCOME_ARCHIVE_REASON: dict[ExamOutcome, ArchiveReason] = {
    ExamOutcome.passed: ArchiveReason.exam_passed,
    ExamOutcome.failed: ArchiveReason.exam_failed,
    ExamOutcome.absent: ArchiveReason.absent,
}

_OUTCOME_NO_REUSSITE: dict[ExamOutcome, NoReussiteReason] = {
    ExamOutcome.failed: NoReussiteReason.echec,
    ExamOutcome.absent: NoReussiteReason.absent,
}

_OUTCOME_MESSAGE: dict[ExamOutcome, str] = {
    ExamOutcome.passed: OUTCOME_PASSED_OK,
    ExamOutcome.failed: OUTCOME_FAILED_OK,
    ExamOutcome.absent: OUTCOME_ABSENT_OK,
}


# ---------------------------------------------------------------------------
# Compensation
# ---------------------------------------------------------------------------

class _Compensations:
    """Inverse writes of an operation in progress."""

    def __init__(self, operation: str, candidat_id: UUID) -> None:
        self.operation = operation
        self.candidat_id = candidat_id
        self._steps: list[tuple[str, Callable[[], object]]] = []

    def push(self, step: str, inverse: Callable[[], object]) -> None:
        self._steps.append((step, inverse))

    def run(self) -> None:
        """Replay the inverses newest first.

        A failing inverse is logged and the remaining ones still run; the
        caller re-raises the error that started the rollback.
        """
        for step, inverse in reversed(self._steps):
            try:
                inverse()
            except StorageFailure:
                logger.exception(
                    "compensation_failed",
                    extra={
                        "operation": self.operation,
                        "step": step,
                        "candidat_id": str(self.candidat_id),
                    },
                )
        self._steps.clear()


@contextmanager
def _compensated(operation: str, candidat_id: UUID) -> Iterator[_Compensations]:
    undo = _Compensations(operation, candidat_id)
    try:
        yield undo
    except StorageFailure:
        logger.warning(
            "operation_rolled_back",
            extra={"operation": operation, "candidat_id": str(candidat_id)},
        )
        undo.run()
        raise


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _publish(
    event_type: BookingEventType,
    candidat_id: UUID,
    now: datetime,
    place: Place | None = None,
    reason: ArchiveReason | None = None,
    outcome: ExamOutcome | None = None,
) -> None:
    dispatcher.publish(
        BookingEvent(
            candidat_id=candidat_id,
            type=event_type,
            place=place,
            reason=reason,
            outcome=outcome,
            occurred_at=now,
        )
    )


def _late_cancel_penalty(
    place: Place, now: datetime, config: Settings
) -> datetime | None:
    """New ``can_book_from`` when a candidate gives up a place too late."""
    if place.date - now < timedelta(days=config.DAYS_FORBID_CANCEL):
        return eligibility.compute_can_book_from(place.date, config)
    return None


def _claim(
    candidat: Candidat,
    place_id: UUID,
    now: datetime,
    visible_at: datetime | None,
    undo: _Compensations,
) -> Place:
    """Reserve *place_id* then point the candidate at it.

    On return the candidate holds the new place and its previous place (if
    any) is still reserved for it.
    """
    undo.push("release_new_place", lambda: places.release(place_id, candidat.id))
    place = places.reserve(place_id, candidat.id, now, visible_at=visible_at)

    undo.push(
        "restore_pointer",
        lambda: candidats.swap_place(
            candidat.id, place.id, candidat.place_id, candidat.booked_at
        ),
    )
    if not candidats.swap_place(candidat.id, candidat.place_id, place.id, now):
        places.release(place.id, candidat.id)
        raise SlotConflict(SlotConflictReason.concurrent_booking, CONCURRENT_BOOKING)
    return place


def _clear_pointer(candidat: Candidat, undo: _Compensations) -> bool:
    """Compare-and-set the candidate pointer from its current place to none.

    Only one of several concurrent requests ending the same booking wins.
    """
    def restore_pointer() -> bool:
        return candidats.swap_place(
            candidat.id, None, candidat.place_id, candidat.booked_at
        )

    try:
        cleared = candidats.swap_place(candidat.id, candidat.place_id, None)
    except StorageFailure:
        undo.push("restore_pointer", restore_pointer)
        raise
    if cleared:
        undo.push("restore_pointer", restore_pointer)
    return cleared


def _release(
    candidat_id: UUID, place_id: UUID, undo: _Compensations
) -> Place | None:
    """Free a place held by the candidate.

    Returns the snapshot to archive, or ``None`` if the candidate no longer
    held the place (another request ended that booking first).
    """
    place = places.get_place(place_id)
    if place is None or place.candidat_id != candidat_id:
        logger.warning(
            "end_booking_place_not_held",
            extra={"candidat_id": str(candidat_id), "place_id": str(place_id)},
        )
        return None

    def restore_place() -> bool:
        return places.restore(place.id, candidat_id, place.booked_at)

    try:
        released = places.release(place.id, candidat_id)
    except StorageFailure:
        undo.push("restore_place", restore_place)
        raise
    if not released:
        return None
    undo.push("restore_place", restore_place)
    return place


def _penalize(
    candidat: Candidat,
    place: Place,
    now: datetime,
    config: Settings,
    undo: _Compensations,
) -> datetime | None:
    penalty = _late_cancel_penalty(place, now, config)
    if penalty is None:
        return None
    undo.push(
        "restore_can_book_from",
        lambda: candidats.restore_fields(candidat, "can_book_from"),
    )
    candidats.set_can_book_from(candidat.id, penalty)
    return penalty


def _archive(
    place: Place,
    candidat_id: UUID,
    reason: ArchiveReason,
    by_user: str,
    now: datetime,
) -> None:
    """Write the ledger entry ending a booking.

    A timed-out insert that did land is accepted as written.
    """
    try:
        archive.archive_place(place, candidat_id, reason, by_user, now)
    except StorageFailure:
        if not _archive_landed(place, candidat_id, now):
            raise


def _archive_landed(place: Place, candidat_id: UUID, now: datetime) -> bool:
    try:
        return archive.is_archived(place.id, candidat_id, now)
    except StorageFailure:
        logger.warning(
            "archive_check_failed",
            extra={"place_id": str(place.id), "candidat_id": str(candidat_id)},
        )
        return False


def _with_retry_date(message: str, can_book_from: datetime) -> str:
    day, _ = clock.french_date_time(can_book_from)
    return f"{message} {MODIFY_THEN_CAN_BOOK_AFTER}{day}"


# ---------------------------------------------------------------------------
# Candidate operations
# ---------------------------------------------------------------------------

def get_eligibility(
    candidat_id: UUID,
    now: datetime | None = None,
    config: Settings = default_settings,
) -> EligibilityVerdict:
    candidat = candidats.require_candidat(candidat_id)
    return eligibility.evaluate(candidat, now or clock.now(), config)


def find_bookable_places(
    candidat_id: UUID,
    criteria: FreePlaceCriteria,
    now: datetime | None = None,
) -> places.FreePlaces:
    """Free places the candidate could book.

    Places dated before the candidate's ``can_book_from`` are left out, and
    the candidate's own departement is searched when neither a centre nor a
    departement is asked for.
    """
    candidat = candidats.require_candidat(candidat_id)
    updates: dict[str, object] = {}
    if candidat.can_book_from is not None and (
        criteria.begin is None
        or clock.localize(criteria.begin) < candidat.can_book_from
    ):
        updates["begin"] = candidat.can_book_from
    if criteria.centre_id is None and criteria.departement is None:
        updates["departement"] = candidat.departement
    return places.find_free_places(criteria.model_copy(update=updates), now)


def book_place(
    candidat_id: UUID,
    place_id: UUID,
    acting_user: str | None = None,
    now: datetime | None = None,
    config: Settings = default_settings,
) -> BookingResult:
    """Book *place_id* for the candidate, replacing any current booking.

    Parameters
    ----------
    candidat_id : UUID
        The candidate to book for.
    place_id : UUID
        The place to reserve.
    acting_user : str | None
        Admin email when an administrator assigns the place.  ``None`` means
        the candidate booked it: the place must then be visible, and the
        late-change penalty applies to the replaced booking.
    now : datetime | None
        Reference instant, defaults to ``clock.now()``.
    config : Settings
        Eligibility and penalty rules.

    Returns
    -------
    BookingResult
        The booked place, the archive reason of the replaced booking if
        there was one, and the new ``can_book_from`` when a penalty applied.

    Raises
    ------
    EligibilityDenied
        The candidate may not book at *now*; nothing was written.
    SlotConflict
        The place is taken or hidden, or another request of the same
        candidate won; the previous booking is untouched.
    StorageFailure
        Storage failed midway; the writes already issued were rolled back.
    """
    now = now or clock.now()
    candidat = candidats.require_candidat(candidat_id)

    if candidat.place_id == place_id:
        raise ValidationError(SAME_RESA_ASKED)

    eligibility.ensure_eligible(candidat, now, config)

    by_candidate = acting_user is None
    by_user = acting_user or candidat.email
    previous_place_id = candidat.place_id
    result = BookingResult(message=SAVE_RESA_OK)

    with _compensated("book_place", candidat.id) as undo:
        place = _claim(
            candidat, place_id, now, visible_at=now if by_candidate else None, undo=undo
        )
        result.place = place
        if previous_place_id is not None:
            old = _release(candidat.id, previous_place_id, undo)
            if old is not None:
                result.archived_reason = ArchiveReason.replaced_by_new_booking
                if by_candidate:
                    penalty = _penalize(candidat, old, now, config, undo)
                    if penalty is not None:
                        result.can_book_from = penalty
                        result.message = _with_retry_date(SAVE_RESA_OK, penalty)
                _archive(
                    old, candidat.id, ArchiveReason.replaced_by_new_booking, by_user, now
                )

    logger.info(
        "place_booked",
        extra={
            "candidat_id": str(candidat.id),
            "place_id": str(place.id),
            "replaced_place_id": str(previous_place_id) if previous_place_id else None,
            "by_user": by_user,
        },
    )
    _publish(BookingEventType.booked, candidat.id, now, place=place)
    return result


def cancel_booking(
    candidat_id: UUID,
    reason: ArchiveReason,
    acting_user: str | None = None,
    now: datetime | None = None,
    config: Settings = default_settings,
) -> BookingResult:
    """End the candidate's active booking with *reason*.

    A candidate without an active booking is left untouched.  ``None`` as
    *acting_user* means the candidate cancelled, which is subject to the
    late-cancellation penalty.
    """
    now = now or clock.now()
    candidat = candidats.require_candidat(candidat_id)

    if candidat.place_id is None:
        return BookingResult(message=NO_RESA_TO_CANCEL)

    by_user = acting_user or candidat.email
    result = BookingResult(message=CANCEL_RESA_OK, archived_reason=reason)

    with _compensated("cancel_booking", candidat.id) as undo:
        place = None
        if _clear_pointer(candidat, undo):
            place = _release(candidat.id, candidat.place_id, undo)
        if place is None:
            return BookingResult(message=NO_RESA_TO_CANCEL)
        result.place = place
        if acting_user is None:
            penalty = _penalize(candidat, place, now, config, undo)
            if penalty is not None:
                result.can_book_from = penalty
                result.message = _with_retry_date(CANCEL_RESA_OK, penalty)
        _archive(place, candidat.id, reason, by_user, now)

    logger.info(
        "booking_cancelled",
        extra={
            "candidat_id": str(candidat.id),
            "place_id": str(place.id),
            "reason": reason.value,
            "by_user": by_user,
        },
    )
    _publish(BookingEventType.cancelled, candidat.id, now, place=place, reason=reason)
    return result


# ---------------------------------------------------------------------------
# Administration / registry operations
# ---------------------------------------------------------------------------

def record_outcome(
    candidat_id: UUID,
    outcome: ExamOutcome,
    outcome_date: datetime,
    acting_user: str,
    now: datetime | None = None,
    config: Settings = default_settings,
) -> BookingResult:
    """Record a practical-exam result and close the candidate's booking.

    Failures and absences extend the history and move ``can_book_from`` to
    ``outcome_date + RETRY_DELAY_DAYS`` (never earlier than it already was).
    A pass makes the candidate permanently ineligible.

    Parameters
    ----------
    candidat_id : UUID
        The examined candidate.
    outcome : ExamOutcome
        Passed, failed or absent.
    outcome_date : datetime
        Date of the exam; naive values are taken as UTC.
    acting_user : str
        Admin email recorded on the archive entry.

    Returns
    -------
    BookingResult
        The closed booking (if any) and the resulting ``can_book_from``.
    """
    now = now or clock.now()
    outcome_date = clock.localize(outcome_date)
    candidat = candidats.require_candidat(candidat_id)
    reason = _OUTCOME_ARCHIVE_REASON[outcome]

    with _compensated("record_outcome", candidat.id) as undo:
        place: Place | None = None
        if candidat.place_id is not None and _clear_pointer(candidat, undo):
            place = _release(candidat.id, candidat.place_id, undo)

        undo.push(
            "restore_outcome_history",
            lambda: candidats.restore_fields(
                candidat, "no_reussites", "can_book_from", "reussite_pratique"
            ),
        )
        can_book_from: datetime | None = None
        if outcome == ExamOutcome.passed:
            candidats.set_reussite_pratique(candidat.id, outcome_date)
        else:
            stored = candidats.add_no_reussite(
                candidat,
                NoReussite(date=outcome_date, reason=_OUTCOME_NO_REUSSITE[outcome]),
                eligibility.compute_can_book_from(outcome_date, config),
            )
            can_book_from = stored.can_book_from

        if place is not None:
            _archive(place, candidat.id, reason, acting_user, now)

    logger.info(
        "exam_outcome_recorded",
        extra={
            "candidat_id": str(candidat.id),
            "outcome": outcome.value,
            "place_id": str(place.id) if place else None,
            "by_user": acting_user,
        },
    )
    _publish(
        BookingEventType.outcome,
        candidat.id,
        now,
        place=place,
        reason=reason if place else None,
        outcome=outcome,
    )
    return BookingResult(
        message=_OUTCOME_MESSAGE[outcome],
        place=place,
        archived_reason=reason if place else None,
        can_book_from=can_book_from,
    )


def move_booking(
    candidat_id: UUID,
    new_place_id: UUID,
    acting_user: str,
    now: datetime | None = None,
) -> BookingResult:
    """Move the candidate's booking to another place as one logical unit.

    The new place is claimed first; if that fails the current booking is
    untouched.  Eligibility is not re-evaluated for an administrative move.
    """
    now = now or clock.now()
    candidat = candidats.require_candidat(candidat_id)

    if candidat.place_id is None:
        raise NotFound(NO_RESA_TO_MOVE)
    if candidat.place_id == new_place_id:
        raise ValidationError(SAME_RESA_ASKED)

    old_place_id = candidat.place_id
    with _compensated("move_booking", candidat.id) as undo:
        place = _claim(candidat, new_place_id, now, visible_at=None, undo=undo)
        old = _release(candidat.id, old_place_id, undo)
        if old is not None:
            _archive(old, candidat.id, ArchiveReason.admin_moved, acting_user, now)

    logger.info(
        "booking_moved",
        extra={
            "candidat_id": str(candidat.id),
            "from_place_id": str(old_place_id),
            "to_place_id": str(place.id),
            "by_user": acting_user,
        },
    )
    _publish(
        BookingEventType.moved,
        candidat.id,
        now,
        place=place,
        reason=ArchiveReason.admin_moved,
    )
    return BookingResult(
        message=MOVE_RESA_OK,
        place=place,
        archived_reason=ArchiveReason.admin_moved,
    )


def remove_booking_by_admin(
    place_id: UUID,
    acting_user: str,
    now: datetime | None = None,
) -> BookingResult:
    """Cancel whatever booking is held on *place_id*."""
    place = places.get_place(place_id)
    if place is None:
        raise NotFound(PLACE_NOT_FOUND)
    if place.candidat_id is None:
        raise ValidationError(PLACE_IS_NOT_BOOKED)
    return cancel_booking(
        place.candidat_id, ArchiveReason.admin_removed, acting_user, now=now
    )


def reset_failures(
    candidat_id: UUID,
    acting_user: str,
    now: datetime | None = None,
) -> Candidat:
    candidats.require_candidat(candidat_id)
    candidat = candidats.reset_failures(candidat_id, now or clock.now())
    logger.info(
        "candidat_failures_reset",
        extra={"candidat_id": str(candidat_id), "by_user": acting_user},
    )
    return candidat
