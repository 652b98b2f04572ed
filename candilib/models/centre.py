"""Pydantic models for the ``centres`` table."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Geoloc(BaseModel):
    lon: float
    lat: float


class CentreCreate(BaseModel):
    """Payload for creating an exam centre."""
    nom: str = Field(min_length=1)
    label: str = Field(min_length=1)
    adresse: str = Field(min_length=1)
    lon: float
    lat: float
    departement: str = Field(min_length=1)
    geo_departement: str | None = None


class CentreUpdate(BaseModel):
    """Partial update of an exam centre; omitted fields are kept."""
    nom: str | None = None
    label: str | None = None
    adresse: str | None = None
    lon: float | None = None
    lat: float | None = None
    geo_departement: str | None = None


class Centre(BaseModel):
    """Full centre record returned from the database."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    nom: str
    label: str | None = None
    adresse: str | None = None
    geoloc: Geoloc | None = None
    departement: str
    geo_departement: str | None = None
    active: bool = True
    disabled_by: str | None = None
    disabled_at: datetime | None = None


class CentreWithCount(BaseModel):
    """A centre with its number of free, visible places."""
    centre: Centre
    count: int = 0


class CentreActivation(BaseModel):
    active: bool


class GeoDepartementInfos(BaseModel):
    """An active geo-departement with its centres and free-place total."""
    geo_departement: str
    centres: list[CentreWithCount] = Field(default_factory=list)
    count: int = 0
