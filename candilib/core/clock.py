"""Clock and calendar service.

All business-rule comparisons go through ``now()`` so they are evaluated in
the fixed civil timezone of the exam centres rather than the host clock's.
Holiday classification covers the French public holidays, including the
Easter-based moving ones, computed per year.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from dateutil.easter import easter

from candilib.core.config import settings
from candilib.core.constants import FRENCH_DATE_FORMAT, FRENCH_HOUR_FORMAT

# (month, day)
_FIXED_HOLIDAYS: tuple[tuple[int, int], ...] = (
    (1, 1),    # Jour de l'an
    (5, 1),    # Fête du travail
    (5, 8),    # Victoire 1945
    (7, 14),   # Fête nationale
    (8, 15),   # Assomption
    (11, 1),   # Toussaint
    (11, 11),  # Armistice
    (12, 25),  # Noël
)

# Days after Easter Sunday
_EASTER_OFFSETS: tuple[int, ...] = (
    1,   # Lundi de Pâques
    39,  # Ascension
    50,  # Lundi de Pentecôte
)


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now() -> datetime:
    """Current instant in the reference timezone."""
    return datetime.now(get_timezone())


def localize(value: datetime) -> datetime:
    """Express *value* in the reference timezone (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_timezone())


def to_iso(value: datetime) -> str:
    """Storage representation of an instant: ISO 8601 in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


@lru_cache(maxsize=64)
def holidays_for_year(year: int) -> frozenset[date]:
    """Return the set of French public holidays for *year*."""
    days = {date(year, month, day) for month, day in _FIXED_HOLIDAYS}
    easter_sunday = easter(year)
    days.update(easter_sunday + timedelta(days=offset) for offset in _EASTER_OFFSETS)
    return frozenset(days)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return localize(value).date()
    return value


def is_holiday(value: date | datetime) -> bool:
    day = _as_date(value)
    return day in holidays_for_year(day.year)


def is_business_day(value: date | datetime) -> bool:
    """False on non-working weekdays and public holidays."""
    day = _as_date(value)
    if day.weekday() in settings.NON_WORKING_WEEKDAYS:
        return False
    return not is_holiday(day)


def next_visible_at(instant: datetime) -> datetime:
    """First daily disclosure instant strictly after *instant*.

    Places created before ``VISIBLE_AT_HOUR`` are disclosed the same day at
    that hour, the others the next day.
    """
    local = localize(instant)
    disclosure = datetime.combine(
        local.date(), time(hour=settings.VISIBLE_AT_HOUR), tzinfo=get_timezone()
    )
    if disclosure <= local:
        disclosure = datetime.combine(
            local.date() + timedelta(days=1),
            time(hour=settings.VISIBLE_AT_HOUR),
            tzinfo=get_timezone(),
        )
    return disclosure


def french_date_time(value: datetime) -> tuple[str, str]:
    """Return ``(date, hour)`` strings as displayed to candidates."""
    local = localize(value)
    return local.strftime(FRENCH_DATE_FORMAT), local.strftime(FRENCH_HOUR_FORMAT)
