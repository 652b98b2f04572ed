"""Exam centre administration.

A centre is never deleted; it is deactivated (``active = False``) once it no
longer owns upcoming places.  Inactive centres are hidden from the free place
search.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from candilib.core import clock
from candilib.core.constants import (
    CENTRE_ALREADY_EXISTS,
    CENTRE_HAS_FUTURE_PLACES,
    CENTRE_NOT_FOUND,
    CENTRE_PARAMS_MISSING,
    TABLE_CENTRES,
)
from candilib.core.exceptions import CentreInUse, NotFound, ValidationError
from candilib.db.supabase import execute, get_supabase
from candilib.models.centre import (
    Centre,
    CentreCreate,
    CentreUpdate,
    CentreWithCount,
    GeoDepartementInfos,
)
from candilib.services import places

logger = logging.getLogger(__name__)


def get_centre(centre_id: UUID) -> Centre:
    client = get_supabase()
    result = execute(
        client.table(TABLE_CENTRES).select("*").eq("id", str(centre_id)).limit(1),
        "get_centre",
    )
    if not result.data:
        raise NotFound(CENTRE_NOT_FOUND)
    return Centre(**result.data[0])


def _find_by_name(nom: str, departement: str) -> Centre | None:
    client = get_supabase()
    result = execute(
        client.table(TABLE_CENTRES)
        .select("*")
        .eq("nom", nom)
        .eq("departement", departement)
        .limit(1),
        "find_centre_by_name",
    )
    if not result.data:
        return None
    return Centre(**result.data[0])


def create_centre(payload: CentreCreate) -> Centre:
    """Create an active centre; names are unique within a departement."""
    if _find_by_name(payload.nom, payload.departement):
        raise ValidationError(CENTRE_ALREADY_EXISTS, code="CENTRE_ALREADY_EXISTS")

    client = get_supabase()
    result = execute(
        client.table(TABLE_CENTRES).insert(
            {
                "nom": payload.nom,
                "label": payload.label,
                "adresse": payload.adresse,
                "geoloc": {"lon": payload.lon, "lat": payload.lat},
                "departement": payload.departement,
                "geo_departement": payload.geo_departement or payload.departement,
                "active": True,
            }
        ),
        "create_centre",
    )
    centre = Centre(**result.data[0])
    logger.info(
        "centre_created",
        extra={"centre_id": str(centre.id), "departement": centre.departement},
    )
    return centre


def update_centre(centre_id: UUID, payload: CentreUpdate) -> Centre:
    """Apply the non-empty fields of *payload* to the centre."""
    centre = get_centre(centre_id)
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise ValidationError(CENTRE_PARAMS_MISSING)

    fields: dict[str, Any] = {}
    for key in ("nom", "label", "adresse", "geo_departement"):
        if key in changes:
            fields[key] = changes[key]

    if "lon" in changes or "lat" in changes:
        current = centre.geoloc
        fields["geoloc"] = {
            "lon": changes.get("lon", current.lon if current else None),
            "lat": changes.get("lat", current.lat if current else None),
        }
        if None in fields["geoloc"].values():
            raise ValidationError(CENTRE_PARAMS_MISSING)

    new_name = fields.get("nom")
    if new_name and new_name != centre.nom:
        duplicate = _find_by_name(new_name, centre.departement)
        if duplicate is not None and duplicate.id != centre.id:
            raise ValidationError(CENTRE_ALREADY_EXISTS, code="CENTRE_ALREADY_EXISTS")

    client = get_supabase()
    result = execute(
        client.table(TABLE_CENTRES).update(fields).eq("id", str(centre_id)),
        "update_centre",
    )
    updated = Centre(**result.data[0])
    logger.info(
        "centre_updated",
        extra={"centre_id": str(centre_id), "fields": sorted(fields)},
    )
    return updated


def set_centre_active(
    centre_id: UUID,
    active: bool,
    acting_user: str,
    now: datetime | None = None,
) -> Centre:
    """Activate or deactivate a centre.

    Deactivation is refused while the centre owns places dated after *now*.
    """
    now = now or clock.now()
    centre = get_centre(centre_id)
    if centre.active == active:
        return centre

    if active:
        fields: dict[str, Any] = {"active": True, "disabled_by": None, "disabled_at": None}
    else:
        if places.count_future_places(centre_id, now) > 0:
            raise CentreInUse(CENTRE_HAS_FUTURE_PLACES)
        fields = {
            "active": False,
            "disabled_by": acting_user,
            "disabled_at": clock.to_iso(now),
        }

    client = get_supabase()
    result = execute(
        client.table(TABLE_CENTRES).update(fields).eq("id", str(centre_id)),
        "set_centre_active",
    )
    logger.info(
        "centre_activation_changed",
        extra={"centre_id": str(centre_id), "active": active, "by_user": acting_user},
    )
    return Centre(**result.data[0])


def find_centres_with_counts(
    departement: str | None = None,
    now: datetime | None = None,
    begin: datetime | None = None,
    end: datetime | None = None,
) -> list[CentreWithCount]:
    """Active centres, each with its number of free places visible at *now*."""
    now = now or clock.now()
    client = get_supabase()
    query = client.table(TABLE_CENTRES).select("*").eq("active", True)
    if departement:
        query = query.eq("departement", departement)
    result = execute(query.order("nom"), "find_centres")

    items: list[CentreWithCount] = []
    for row in result.data or []:
        centre = Centre(**row)
        count = places.count_free_places_by_centre(centre.id, now, begin, end)
        items.append(CentreWithCount(centre=centre, count=count))
    return items


def find_geo_departements_infos(
    now: datetime | None = None,
    begin: datetime | None = None,
) -> list[GeoDepartementInfos]:
    """Geo-departements that have at least one active centre.

    Parameters
    ----------
    now : datetime | None
        Reference instant for visibility, defaults to ``clock.now()``.
    begin : datetime | None
        Earliest exam date counted, typically the candidate's
        ``can_book_from``.

    Returns
    -------
    list[GeoDepartementInfos]
        Ordered by geo-departement, each with its centres (by name) and the
        sum of their free places.
    """
    grouped: dict[str, list[CentreWithCount]] = {}
    for item in find_centres_with_counts(now=now, begin=begin):
        key = item.centre.geo_departement or item.centre.departement
        grouped.setdefault(key, []).append(item)
    return [
        GeoDepartementInfos(
            geo_departement=geo_departement,
            centres=items,
            count=sum(item.count for item in items),
        )
        for geo_departement, items in sorted(grouped.items())
    ]
