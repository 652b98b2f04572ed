"""Pydantic models for the ``archived_places`` ledger table."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from candilib.models.enums import ArchiveReason


class ArchivedPlaceCreate(BaseModel):
    """Immutable snapshot written when a booking ends."""
    model_config = ConfigDict(frozen=True)

    place_id: UUID
    candidat_id: UUID
    centre_id: UUID
    inspecteur_id: UUID
    date: datetime
    booked_at: datetime | None = None
    archive_reason: ArchiveReason
    archived_at: datetime
    by_user: str
    is_candilib: bool = True


class ArchivedPlace(ArchivedPlaceCreate):
    """Archived booking as returned from the database."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
