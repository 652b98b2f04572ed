"""Pydantic models for the ``places`` table.

A place is a bookable (centre, inspecteur, date) triple.  ``candidat_id`` is
a back reference to the candidate holding it, ``None`` while free.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PlaceCreate(BaseModel):
    """Payload for creating a place (admin or schedule import)."""
    centre_id: UUID
    inspecteur_id: UUID
    date: datetime


class Place(BaseModel):
    """Full place record returned from the database."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    centre_id: UUID
    inspecteur_id: UUID
    date: datetime
    candidat_id: UUID | None = None
    booked_at: datetime | None = None
    visible_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_booked(self) -> bool:
        return self.candidat_id is not None


class FreePlaceCriteria(BaseModel):
    """Filters for the candidate-visible free place listing.

    At least one of ``centre_id`` / ``departement`` should be given; with
    neither, all active centres are searched.
    """
    centre_id: UUID | None = None
    departement: str | None = None
    begin: datetime | None = None
    end: datetime | None = None
