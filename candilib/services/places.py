"""Slot repository backed by the Supabase ``places`` table.

``reserve`` is the single serialization point for slot contention: it is one
conditional ``UPDATE ... WHERE id = :id AND candidat_id IS NULL`` so, among
concurrent callers, exactly one gets the row back and every other one sees an
empty result.  No in-process lock is involved.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any
from uuid import UUID

from candilib.core import clock
from candilib.core.config import settings
from candilib.core.constants import (
    PLACE_ALREADY_BOOKED,
    PLACE_ALREADY_EXISTS,
    PLACE_IS_BOOKED,
    PLACE_NOT_FOUND,
    PLACE_NOT_WORKING_DAY,
    TABLE_CENTRES,
    TABLE_PLACES,
)
from candilib.core.exceptions import NotFound, SlotConflict, ValidationError
from candilib.db.supabase import execute, get_supabase
from candilib.models.enums import SlotConflictReason
from candilib.models.place import FreePlaceCriteria, Place, PlaceCreate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_place(place_id: UUID) -> Place | None:
    """Return the place with *place_id*, or ``None``."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES).select("*").eq("id", str(place_id)).limit(1),
        "get_place",
    )
    if not result.data:
        return None
    return Place(**result.data[0])


def find_place_by_candidat(candidat_id: UUID) -> Place | None:
    """Return the place currently held by *candidat_id*, or ``None``."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES)
        .select("*")
        .eq("candidat_id", str(candidat_id))
        .limit(1),
        "find_place_by_candidat",
    )
    if not result.data:
        return None
    return Place(**result.data[0])


def _active_centre_ids(departement: str | None) -> list[str]:
    client = get_supabase()
    query = client.table(TABLE_CENTRES).select("id").eq("active", True)
    if departement:
        query = query.eq("departement", departement)
    result = execute(query, "find_active_centres")
    return [row["id"] for row in result.data or []]


def _free_places_query(
    query: Any,
    centre_ids: list[str],
    now: datetime,
    begin: datetime | None,
    end: datetime | None,
) -> Any:
    """Apply the free / visible / upcoming filters to a ``places`` query."""
    lower = max(now, clock.localize(begin)) if begin is not None else now
    query = (
        query.in_("centre_id", centre_ids)
        .is_("candidat_id", "null")
        .lte("visible_at", clock.to_iso(now))
        .gt("date", clock.to_iso(lower))
    )
    if end is not None:
        query = query.lte("date", clock.to_iso(end))
    return query


class FreePlaces:
    """Lazy, restartable sequence of candidate-visible free places.

    Each iteration starts a fresh paged scan ordered by date, so a caller that
    lost a reservation race can simply iterate again to see the current state.
    """

    def __init__(
        self,
        criteria: FreePlaceCriteria,
        now: datetime,
        page_size: int | None = None,
    ) -> None:
        self.criteria = criteria
        self.now = now
        self.page_size = page_size or settings.PAGE_SIZE

    def _centre_ids(self) -> list[str]:
        if self.criteria.centre_id is not None:
            return [str(self.criteria.centre_id)]
        return _active_centre_ids(self.criteria.departement)

    def __iter__(self) -> Iterator[Place]:
        centre_ids = self._centre_ids()
        if not centre_ids:
            return

        offset = 0
        while True:
            query = (
                _free_places_query(
                    get_supabase().table(TABLE_PLACES).select("*"),
                    centre_ids,
                    self.now,
                    self.criteria.begin,
                    self.criteria.end,
                )
                .order("date")
                .order("id")
                .range(offset, offset + self.page_size - 1)
            )
            rows: list[dict[str, Any]] = execute(query, "find_free_places").data or []
            for row in rows:
                yield Place(**row)
            if len(rows) < self.page_size:
                return
            offset += self.page_size


def find_free_places(
    criteria: FreePlaceCriteria, now: datetime | None = None
) -> FreePlaces:
    """Return the free places a candidate may see at *now*.

    Parameters
    ----------
    criteria : FreePlaceCriteria
        Centre or departement, plus an optional date window.
    now : datetime | None
        Reference instant, defaults to ``clock.now()``.

    Returns
    -------
    FreePlaces
        A lazy sequence ordered by date.  Nothing is queried until it is
        iterated, and each iteration reads the current state again.
    """
    return FreePlaces(criteria, now or clock.now())


def count_free_places_by_centre(
    centre_id: UUID,
    now: datetime,
    begin: datetime | None = None,
    end: datetime | None = None,
) -> int:
    """Count the free places of a centre visible at *now*."""
    query = _free_places_query(
        get_supabase().table(TABLE_PLACES).select("id", count="exact"),
        [str(centre_id)],
        now,
        begin,
        end,
    )
    result = execute(query, "count_free_places")
    return int(result.count or 0)


def count_future_places(centre_id: UUID, now: datetime) -> int:
    """Count the places of a centre dated after *now*, booked or not."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES)
        .select("id", count="exact")
        .eq("centre_id", str(centre_id))
        .gt("date", clock.to_iso(now)),
        "count_future_places",
    )
    return int(result.count or 0)


# ---------------------------------------------------------------------------
# Reservation primitives
# ---------------------------------------------------------------------------

def reserve(
    place_id: UUID,
    candidat_id: UUID,
    booked_at: datetime,
    visible_at: datetime | None = None,
) -> Place:
    """Atomically claim a free place for *candidat_id*.

    Parameters
    ----------
    place_id : UUID
        The place to claim.
    candidat_id : UUID
        The candidate the place is reserved for.
    booked_at : datetime
        Booking instant stored on the place.
    visible_at : datetime | None
        When given, the place must also be disclosed and upcoming at that
        instant; a place that is not is reported as not found.

    Returns
    -------
    Place
        The place as stored after the claim.

    Raises
    ------
    SlotConflict
        ``SLOT_ALREADY_BOOKED`` when another caller holds the place,
        ``SLOT_NOT_FOUND`` when it does not exist or is not bookable.
    """
    client = get_supabase()
    query = (
        client.table(TABLE_PLACES)
        .update({"candidat_id": str(candidat_id), "booked_at": clock.to_iso(booked_at)})
        .eq("id", str(place_id))
        .is_("candidat_id", "null")
    )
    if visible_at is not None:
        query = query.lte("visible_at", clock.to_iso(visible_at)).gt(
            "date", clock.to_iso(visible_at)
        )
    result = execute(query, "reserve_place")
    if result.data:
        return Place(**result.data[0])

    place = get_place(place_id)
    if place is None or not place.is_booked:
        raise SlotConflict(SlotConflictReason.slot_not_found, PLACE_NOT_FOUND)

    logger.info(
        "reserve_place_conflict",
        extra={"place_id": str(place_id), "candidat_id": str(candidat_id)},
    )
    raise SlotConflict(SlotConflictReason.slot_already_booked, PLACE_ALREADY_BOOKED)


def release(place_id: UUID, candidat_id: UUID | None = None) -> bool:
    """Clear the candidate reference of a place.

    When *candidat_id* is given the place is only cleared if that candidate
    still holds it.  Idempotent: returns ``False`` when nothing changed.
    """
    client = get_supabase()
    query = (
        client.table(TABLE_PLACES)
        .update({"candidat_id": None, "booked_at": None})
        .eq("id", str(place_id))
    )
    if candidat_id is not None:
        query = query.eq("candidat_id", str(candidat_id))
    else:
        query = query.not_.is_("candidat_id", "null")
    result = execute(query, "release_place")
    return bool(result.data)


def restore(place_id: UUID, candidat_id: UUID, booked_at: datetime | None) -> bool:
    """Give a place released by mistake back to *candidat_id*.

    Used to undo a ``release`` whose follow-up write failed.  Keeps the
    original ``booked_at`` and skips visibility, and does nothing if the
    place was never released or someone else took it meanwhile.
    """
    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES)
        .update(
            {
                "candidat_id": str(candidat_id),
                "booked_at": clock.to_iso(booked_at) if booked_at else None,
            }
        )
        .eq("id", str(place_id))
        .is_("candidat_id", "null"),
        "restore_place",
    )
    return bool(result.data)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

def find_place_by_slot(
    centre_id: UUID, inspecteur_id: UUID, date: datetime
) -> Place | None:
    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES)
        .select("*")
        .eq("centre_id", str(centre_id))
        .eq("inspecteur_id", str(inspecteur_id))
        .eq("date", clock.to_iso(date))
        .limit(1),
        "find_place_by_slot",
    )
    if not result.data:
        return None
    return Place(**result.data[0])


def create_place(payload: PlaceCreate, now: datetime | None = None) -> Place:
    """Create a free place for an inspector at a centre.

    The place becomes visible to candidates at the next daily disclosure
    hour.
    """
    now = now or clock.now()
    if not clock.is_business_day(payload.date):
        raise ValidationError(PLACE_NOT_WORKING_DAY)
    if find_place_by_slot(payload.centre_id, payload.inspecteur_id, payload.date):
        raise ValidationError(PLACE_ALREADY_EXISTS)

    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES).insert(
            {
                "centre_id": str(payload.centre_id),
                "inspecteur_id": str(payload.inspecteur_id),
                "date": clock.to_iso(payload.date),
                "visible_at": clock.to_iso(clock.next_visible_at(now)),
                "created_at": clock.to_iso(now),
            }
        ),
        "create_place",
    )
    place = Place(**result.data[0])
    logger.info(
        "place_created",
        extra={"place_id": str(place.id), "centre_id": str(place.centre_id)},
    )
    return place


def delete_place(place_id: UUID) -> Place:
    """Delete a free place.  Booked places must be released first."""
    place = get_place(place_id)
    if place is None:
        raise NotFound(PLACE_NOT_FOUND)
    if place.is_booked:
        raise ValidationError(PLACE_IS_BOOKED)

    client = get_supabase()
    result = execute(
        client.table(TABLE_PLACES)
        .delete()
        .eq("id", str(place_id))
        .is_("candidat_id", "null"),
        "delete_place",
    )
    if not result.data:
        raise SlotConflict(SlotConflictReason.slot_already_booked, PLACE_IS_BOOKED)
    logger.info("place_deleted", extra={"place_id": str(place_id)})
    return place
