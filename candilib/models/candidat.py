"""Pydantic models for the ``candidats`` table.

``no_reussites`` is stored as a JSONB array ordered by date; ``place_id`` is
the candidate's single active booking pointer.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from candilib.models.enums import NoReussiteReason


class NoReussite(BaseModel):
    """A negative practical-exam outcome."""
    date: datetime
    reason: NoReussiteReason


class CandidatCreate(BaseModel):
    """Payload for inserting a candidate (pre-signup)."""
    code_neph: str
    nom_naissance: str
    prenom: str | None = None
    email: str
    portable: str | None = None
    adresse: str | None = None
    departement: str | None = None


class Candidat(BaseModel):
    """Full candidate record returned from the database."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code_neph: str
    nom_naissance: str
    prenom: str | None = None
    email: str
    departement: str | None = None
    date_reussite_etg: datetime | None = None
    no_reussites: list[NoReussite] = Field(default_factory=list)
    failures_reset_at: datetime | None = None
    is_validated_by_aurige: bool = False
    can_book_from: datetime | None = None
    reussite_pratique: datetime | None = None
    place_id: UUID | None = None
    booked_at: datetime | None = None

    def failures_count(self) -> int:
        """Number of exam failures counted against the maximum."""
        return sum(
            1
            for entry in self.no_reussites
            if entry.reason == NoReussiteReason.echec
            and (self.failures_reset_at is None or entry.date > self.failures_reset_at)
        )
