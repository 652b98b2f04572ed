"""Administration endpoints: places, bookings, exam outcomes, centres, stats.

The administrator is identified by the ``X-Admin-Email`` header, set
upstream once the admin token has been verified.  Every write is attributed
to that email in the archive ledger.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Header, Query

from candilib.models.booking import (
    BookingResult,
    MoveRequest,
    OutcomeCounts,
    OutcomeRequest,
)
from candilib.models.candidat import Candidat
from candilib.models.centre import (
    Centre,
    CentreActivation,
    CentreCreate,
    CentreUpdate,
    CentreWithCount,
)
from candilib.models.place import Place, PlaceCreate
from candilib.services import archive, booking, centres, places

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Places
# ---------------------------------------------------------------------------

@router.post("/places", status_code=201, response_model=Place)
def create_place(payload: PlaceCreate, x_admin_email: str = Header(...)) -> Place:
    place = places.create_place(payload)
    logger.info(
        "admin_place_created",
        extra={"place_id": str(place.id), "by_user": x_admin_email},
    )
    return place


@router.delete("/places/{place_id}")
def delete_place(place_id: UUID, x_admin_email: str = Header(...)) -> dict[str, Any]:
    place = places.delete_place(place_id)
    logger.info(
        "admin_place_deleted",
        extra={"place_id": str(place.id), "by_user": x_admin_email},
    )
    return {"success": True, "place": place.model_dump(mode="json")}


@router.delete("/places/{place_id}/booking", response_model=BookingResult)
def remove_booking(place_id: UUID, x_admin_email: str = Header(...)) -> BookingResult:
    return booking.remove_booking_by_admin(place_id, x_admin_email)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

@router.post("/candidats/{candidat_id}/booking/{place_id}", response_model=BookingResult)
def assign_place(
    candidat_id: UUID, place_id: UUID, x_admin_email: str = Header(...)
) -> BookingResult:
    """Book a place on behalf of a candidate; eligibility still applies."""
    return booking.book_place(candidat_id, place_id, acting_user=x_admin_email)


@router.patch("/candidats/{candidat_id}/booking", response_model=BookingResult)
def move_booking(
    candidat_id: UUID, payload: MoveRequest, x_admin_email: str = Header(...)
) -> BookingResult:
    return booking.move_booking(candidat_id, payload.place_id, x_admin_email)


@router.post("/candidats/{candidat_id}/outcome", response_model=BookingResult)
def record_outcome(
    candidat_id: UUID, payload: OutcomeRequest, x_admin_email: str = Header(...)
) -> BookingResult:
    return booking.record_outcome(
        candidat_id, payload.outcome, payload.date, x_admin_email
    )


@router.post("/candidats/{candidat_id}/reset-failures", response_model=Candidat)
def reset_failures(candidat_id: UUID, x_admin_email: str = Header(...)) -> Candidat:
    return booking.reset_failures(candidat_id, x_admin_email)


# ---------------------------------------------------------------------------
# Centres
# ---------------------------------------------------------------------------

@router.post("/centres", status_code=201, response_model=Centre)
def create_centre(payload: CentreCreate, x_admin_email: str = Header(...)) -> Centre:
    return centres.create_centre(payload)


@router.patch("/centres/{centre_id}", response_model=Centre)
def update_centre(
    centre_id: UUID, payload: CentreUpdate, x_admin_email: str = Header(...)
) -> Centre:
    return centres.update_centre(centre_id, payload)


@router.patch("/centres/{centre_id}/active", response_model=Centre)
def set_centre_active(
    centre_id: UUID, payload: CentreActivation, x_admin_email: str = Header(...)
) -> Centre:
    return centres.set_centre_active(centre_id, payload.active, x_admin_email)


@router.get("/centres", response_model=list[CentreWithCount])
def list_centres(
    x_admin_email: str = Header(...),
    departement: str | None = Query(default=None),
    begin: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
) -> list[CentreWithCount]:
    return centres.find_centres_with_counts(departement, begin=begin, end=end)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@router.get("/stats/outcomes", response_model=OutcomeCounts)
def outcome_stats(
    centre_id: UUID,
    x_admin_email: str = Header(...),
    begin: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
) -> OutcomeCounts:
    """Passed / failed / absent counts of a centre for exams in the period."""
    return archive.count_by_outcome_and_centre(centre_id, begin, end)
