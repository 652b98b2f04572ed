"""Candidate repository backed by the Supabase ``candidats`` table.

``swap_place`` is the candidate-scoped compare-and-set: it moves the active
booking pointer only if it still holds the value the caller read, which
serializes concurrent booking attempts of one candidate on different places.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from candilib.core import clock
from candilib.core.constants import CANDIDAT_NOT_FOUND, TABLE_CANDIDATS
from candilib.core.exceptions import NotFound
from candilib.db.supabase import execute, get_supabase
from candilib.models.candidat import Candidat, NoReussite

logger = logging.getLogger(__name__)


def get_candidat(candidat_id: UUID) -> Candidat | None:
    """Return the candidate with *candidat_id*, or ``None``."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_CANDIDATS).select("*").eq("id", str(candidat_id)).limit(1),
        "get_candidat",
    )
    if not result.data:
        return None
    return Candidat(**result.data[0])


def require_candidat(candidat_id: UUID) -> Candidat:
    """Return the candidate or raise ``NotFound``."""
    candidat = get_candidat(candidat_id)
    if candidat is None:
        raise NotFound(CANDIDAT_NOT_FOUND)
    return candidat


def swap_place(
    candidat_id: UUID,
    expected_place_id: UUID | None,
    new_place_id: UUID | None,
    booked_at: datetime | None = None,
) -> bool:
    """Set the active booking pointer if it still equals *expected_place_id*.

    Returns ``False`` when another request changed the pointer first.
    """
    client = get_supabase()
    query = (
        client.table(TABLE_CANDIDATS)
        .update(
            {
                "place_id": str(new_place_id) if new_place_id else None,
                "booked_at": clock.to_iso(booked_at) if booked_at else None,
            }
        )
        .eq("id", str(candidat_id))
    )
    if expected_place_id is None:
        query = query.is_("place_id", "null")
    else:
        query = query.eq("place_id", str(expected_place_id))

    result = execute(query, "swap_candidat_place")
    if not result.data:
        logger.warning(
            "swap_candidat_place_conflict",
            extra={
                "candidat_id": str(candidat_id),
                "expected_place_id": str(expected_place_id),
                "new_place_id": str(new_place_id),
            },
        )
        return False
    return True


def update_candidat(candidat_id: UUID, fields: dict[str, Any]) -> Candidat:
    """Apply a partial update and return the stored candidate."""
    client = get_supabase()
    result = execute(
        client.table(TABLE_CANDIDATS).update(fields).eq("id", str(candidat_id)),
        "update_candidat",
    )
    if not result.data:
        raise NotFound(CANDIDAT_NOT_FOUND)
    return Candidat(**result.data[0])


def add_no_reussite(
    candidat: Candidat, entry: NoReussite, can_book_from: datetime
) -> Candidat:
    """Append a failure / absence to the history and move ``can_book_from``.

    Recording the same outcome twice keeps a single history entry, and an
    outcome recorded late never brings ``can_book_from`` forward.

    Parameters
    ----------
    candidat : Candidat
        Snapshot the history is read from.
    entry : NoReussite
        The failure or absence to record.
    can_book_from : datetime
        Retry instant derived from *entry*.

    Returns
    -------
    Candidat
        The stored candidate after the update.
    """
    history = list(candidat.no_reussites)
    if entry not in history:
        history.append(entry)
    history.sort(key=lambda item: item.date)
    if candidat.can_book_from is not None:
        can_book_from = max(candidat.can_book_from, can_book_from)
    return update_candidat(
        candidat.id,
        {
            "no_reussites": [item.model_dump(mode="json") for item in history],
            "can_book_from": clock.to_iso(can_book_from),
        },
    )


def restore_fields(candidat: Candidat, *fields: str) -> Candidat:
    """Write *fields* back to the values held by the *candidat* snapshot."""
    return update_candidat(
        candidat.id, candidat.model_dump(mode="json", include=set(fields))
    )


def set_can_book_from(candidat_id: UUID, can_book_from: datetime) -> Candidat:
    return update_candidat(
        candidat_id, {"can_book_from": clock.to_iso(can_book_from)}
    )


def set_reussite_pratique(candidat_id: UUID, date: datetime) -> Candidat:
    return update_candidat(candidat_id, {"reussite_pratique": clock.to_iso(date)})


def reset_failures(candidat_id: UUID, now: datetime) -> Candidat:
    """Stop counting past failures against the maximum."""
    return update_candidat(
        candidat_id,
        {"failures_reset_at": clock.to_iso(now), "can_book_from": None},
    )
