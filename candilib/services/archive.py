"""Archive ledger of terminated bookings.

Rows of ``archived_places`` are inserted once and never updated or deleted.
The aggregation helpers are the read interface used by the statistics
collaborator.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from candilib.core import clock
from candilib.core.constants import TABLE_ARCHIVED_PLACES
from candilib.db.supabase import execute, get_supabase
from candilib.models.archived_place import ArchivedPlace, ArchivedPlaceCreate
from candilib.models.booking import OutcomeCounts
from candilib.models.enums import ArchiveReason
from candilib.models.place import Place

logger = logging.getLogger(__name__)

OUTCOME_REASONS: tuple[ArchiveReason, ...] = (
    ArchiveReason.exam_passed,
    ArchiveReason.exam_failed,
    ArchiveReason.absent,
)


def _is_candilib(reason: ArchiveReason) -> bool:
    """Whether the archived booking ended through the platform itself."""
    match reason:
        case (
            ArchiveReason.candidate_cancel
            | ArchiveReason.replaced_by_new_booking
            | ArchiveReason.admin_removed
            | ArchiveReason.admin_moved
        ):
            return True
        case ArchiveReason.exam_failed | ArchiveReason.exam_passed | ArchiveReason.absent:
            return False


def archive_place(
    place: Place,
    candidat_id: UUID,
    reason: ArchiveReason,
    by_user: str,
    now: datetime,
) -> ArchivedPlace:
    """Append a snapshot of *place* as it stopped being active for *candidat_id*.

    Parameters
    ----------
    place : Place
        The place as it was while booked, read before its release.
    candidat_id : UUID
        The candidate whose booking ended.
    reason : ArchiveReason
        Why the booking ended.
    by_user : str
        Email of the candidate or administrator who ended it.
    now : datetime
        Archive instant.

    Returns
    -------
    ArchivedPlace
        The inserted ledger row.
    """
    entry = ArchivedPlaceCreate(
        place_id=place.id,
        candidat_id=candidat_id,
        centre_id=place.centre_id,
        inspecteur_id=place.inspecteur_id,
        date=place.date,
        booked_at=place.booked_at,
        archive_reason=reason,
        archived_at=now,
        by_user=by_user,
        is_candilib=_is_candilib(reason),
    )
    client = get_supabase()
    result = execute(
        client.table(TABLE_ARCHIVED_PLACES).insert(entry.model_dump(mode="json")),
        "archive_place",
    )
    archived = ArchivedPlace(**result.data[0])
    logger.info(
        "place_archived",
        extra={
            "place_id": str(place.id),
            "candidat_id": str(candidat_id),
            "reason": reason.value,
            "by_user": by_user,
        },
    )
    return archived


def is_archived(place_id: UUID, candidat_id: UUID, archived_at: datetime) -> bool:
    """Whether the entry written by ``archive_place`` at *archived_at* exists."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_ARCHIVED_PLACES)
        .select("id")
        .eq("place_id", str(place_id))
        .eq("candidat_id", str(candidat_id))
        .eq("archived_at", clock.to_iso(archived_at))
        .limit(1),
        "find_archived_entry",
    )
    return bool(result.data)


def find_by_candidat(candidat_id: UUID) -> list[ArchivedPlace]:
    """Archived bookings of a candidate, oldest first."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_ARCHIVED_PLACES)
        .select("*")
        .eq("candidat_id", str(candidat_id))
        .order("archived_at"),
        "find_archived_by_candidat",
    )
    return [ArchivedPlace(**row) for row in result.data or []]


def _period_query(
    query: Any, begin: datetime | None, end: datetime | None
) -> Any:
    if begin is not None:
        query = query.gte("date", clock.to_iso(begin))
    if end is not None:
        query = query.lte("date", clock.to_iso(end))
    return query


def count_by_reason_and_period(
    reason: ArchiveReason,
    begin: datetime | None = None,
    end: datetime | None = None,
    centre_ids: list[UUID] | None = None,
) -> int:
    """Count archived bookings with *reason* whose exam date is in the period."""
    client = get_supabase()
    query = (
        client.table(TABLE_ARCHIVED_PLACES)
        .select("id", count="exact")
        .eq("archive_reason", reason.value)
    )
    if centre_ids:
        query = query.in_("centre_id", [str(cid) for cid in centre_ids])
    result = execute(_period_query(query, begin, end), "count_archived_by_reason")
    return int(result.count or 0)


def count_by_outcome_and_centre(
    centre_id: UUID,
    begin: datetime | None = None,
    end: datetime | None = None,
) -> OutcomeCounts:
    """Exam outcomes (passed / failed / absent) of one centre over a period."""
    counts = {
        reason: count_by_reason_and_period(reason, begin, end, [centre_id])
        for reason in OUTCOME_REASONS
    }
    return OutcomeCounts(centre_id=centre_id, begin=begin, end=end, counts=counts)
