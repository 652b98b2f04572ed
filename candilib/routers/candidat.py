"""Candidate endpoints: departements, free place search, booking, cancellation
and eligibility.

The candidate is identified by the ``X-Candidat-Id`` header, set upstream
once the candidate token has been verified.

Handlers are plain ``def`` so that FastAPI runs the blocking storage calls
in its threadpool.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Header, Query

from candilib.models.booking import BookingResult, EligibilityVerdict
from candilib.models.centre import GeoDepartementInfos
from candilib.models.enums import ArchiveReason
from candilib.models.place import FreePlaceCriteria
from candilib.services import booking, candidats, centres

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/departements")
def list_departements(x_candidat_id: UUID = Header(...)) -> dict[str, Any]:
    """Active geo-departements with their centres and free places."""
    candidat = candidats.require_candidat(x_candidat_id)
    infos: list[GeoDepartementInfos] = centres.find_geo_departements_infos(
        begin=candidat.can_book_from
    )
    logger.info(
        "geo_departements_listed",
        extra={"candidat_id": str(x_candidat_id), "count": len(infos)},
    )
    return {
        "success": True,
        "geoDepartementsInfos": [info.model_dump(mode="json") for info in infos],
    }


@router.get("/places")
def list_free_places(
    x_candidat_id: UUID = Header(...),
    centre_id: UUID | None = Query(default=None),
    departement: str | None = Query(default=None),
    begin: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
) -> dict[str, Any]:
    """Free places the candidate may book, ordered by date."""
    criteria = FreePlaceCriteria(
        centre_id=centre_id, departement=departement, begin=begin, end=end
    )
    found = list(booking.find_bookable_places(x_candidat_id, criteria))
    return {
        "success": True,
        "places": [place.model_dump(mode="json") for place in found],
    }


@router.post("/places/{place_id}", response_model=BookingResult)
def book(place_id: UUID, x_candidat_id: UUID = Header(...)) -> BookingResult:
    return booking.book_place(x_candidat_id, place_id)


@router.delete("/places", response_model=BookingResult)
def cancel(x_candidat_id: UUID = Header(...)) -> BookingResult:
    return booking.cancel_booking(x_candidat_id, ArchiveReason.candidate_cancel)


@router.get("/eligibility", response_model=EligibilityVerdict)
def eligibility(x_candidat_id: UUID = Header(...)) -> EligibilityVerdict:
    return booking.get_eligibility(x_candidat_id)
