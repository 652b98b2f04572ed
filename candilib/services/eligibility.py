"""Candidate eligibility evaluator.

Pure functions deciding whether a candidate may book an exam place at a given
instant.  Rules are checked in a fixed order and the first failing rule is
reported:

1. practical exam already passed (permanent)
2. maximum number of practical failures reached (permanent until reset)
3. not yet validated against the Aurige registry
4. theory exam (ETG) missing or older than the validity window
5. retry delay after a failure / absence not elapsed yet
"""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from candilib.core import clock
from candilib.core.config import Settings, settings as default_settings
from candilib.core.constants import (
    CAN_BOOK_AFTER,
    CANDIDAT_DATE_ETG_KO,
    CANDIDAT_DATE_ETG_MISSING,
    CANDIDAT_EXAM_PASSED,
    CANDIDAT_MAX_FAILURES,
    CANDIDAT_NOT_VALIDATED,
)
from candilib.core.exceptions import EligibilityDenied
from candilib.models.booking import EligibilityVerdict
from candilib.models.candidat import Candidat
from candilib.models.enums import EligibilityReason

_ALLOWED = EligibilityVerdict(allowed=True)


def theory_expires_at(
    date_reussite_etg: datetime, config: Settings = default_settings
) -> datetime:
    """Instant at which a theory-exam pass stops being valid."""
    return date_reussite_etg + relativedelta(years=config.THEORY_VALIDITY_YEARS)


def compute_can_book_from(
    outcome_date: datetime, config: Settings = default_settings
) -> datetime:
    """Earliest booking instant after a failure or absence on *outcome_date*.

    Calendar days, not business days.
    """
    return outcome_date + timedelta(days=config.RETRY_DELAY_DAYS)


def _denied(
    reason: EligibilityReason, message: str, can_book_from: datetime | None = None
) -> EligibilityVerdict:
    return EligibilityVerdict(
        allowed=False, reason=reason, message=message, can_book_from=can_book_from
    )


def evaluate(
    candidat: Candidat,
    now: datetime,
    config: Settings = default_settings,
) -> EligibilityVerdict:
    """Return the eligibility verdict of *candidat* at *now*.

    Rules are checked in the order listed in the module docstring and the
    first failing one is reported.

    Parameters
    ----------
    candidat : Candidat
        The candidate snapshot to judge.
    now : datetime
        Reference instant, timezone-aware.
    config : Settings
        Rule parameters (failure cap, theory validity, retry delay).

    Returns
    -------
    EligibilityVerdict
        ``allowed=True``, or the first failing reason with its French
        message and, for ``RETRY_TOO_SOON``, the ``can_book_from`` instant.
    """
    if candidat.reussite_pratique is not None:
        return _denied(EligibilityReason.exam_passed, CANDIDAT_EXAM_PASSED)

    if config.MAX_FAILURES > 0 and candidat.failures_count() >= config.MAX_FAILURES:
        return _denied(EligibilityReason.max_failures_reached, CANDIDAT_MAX_FAILURES)

    if not candidat.is_validated_by_aurige:
        return _denied(EligibilityReason.not_validated, CANDIDAT_NOT_VALIDATED)

    if config.THEORY_REQUIRED:
        if candidat.date_reussite_etg is None:
            return _denied(EligibilityReason.theory_expired, CANDIDAT_DATE_ETG_MISSING)
        expires_at = theory_expires_at(candidat.date_reussite_etg, config)
        if expires_at <= now:
            day, _ = clock.french_date_time(expires_at)
            return _denied(
                EligibilityReason.theory_expired, f"{CANDIDAT_DATE_ETG_KO}{day}"
            )

    if candidat.can_book_from is not None and candidat.can_book_from > now:
        day, _ = clock.french_date_time(candidat.can_book_from)
        return _denied(
            EligibilityReason.retry_too_soon,
            f"{CAN_BOOK_AFTER}{day}",
            can_book_from=candidat.can_book_from,
        )

    return _ALLOWED


def ensure_eligible(
    candidat: Candidat,
    now: datetime,
    config: Settings = default_settings,
) -> None:
    """Raise ``EligibilityDenied`` unless *candidat* may book at *now*."""
    verdict = evaluate(candidat, now, config)
    if verdict.allowed:
        return
    if verdict.reason is None:
        raise ValueError("a denied eligibility verdict must carry a reason")
    raise EligibilityDenied(
        verdict.reason, verdict.message or "", can_book_from=verdict.can_book_from
    )
