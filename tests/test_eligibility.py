"""Unit tests for the eligibility evaluator."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from uuid import uuid4

import pytest

from candilib.core.config import Settings
from candilib.core.exceptions import EligibilityDenied
from candilib.models.booking import EligibilityVerdict
from candilib.models.candidat import Candidat, NoReussite
from candilib.models.enums import EligibilityReason, NoReussiteReason
from candilib.services import eligibility

NOW = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)


def _candidat(**overrides) -> Candidat:
    fields = {
        "id": uuid4(),
        "code_neph": "093000000001",
        "nom_naissance": "MARTIN",
        "email": "martin@example.fr",
        "date_reussite_etg": NOW - timedelta(days=365),
        "is_validated_by_aurige": True,
    }
    fields.update(overrides)
    return Candidat(**fields)


def _failures(count: int, start: datetime) -> list[NoReussite]:
    return [
        NoReussite(date=start + timedelta(days=60 * i), reason=NoReussiteReason.echec)
        for i in range(count)
    ]


class TestEvaluate:
    def test_eligible_candidate(self) -> None:
        verdict = eligibility.evaluate(_candidat(), NOW)
        assert verdict.allowed
        assert verdict.reason is None

    def test_not_validated(self) -> None:
        verdict = eligibility.evaluate(_candidat(is_validated_by_aurige=False), NOW)
        assert not verdict.allowed
        assert verdict.reason == EligibilityReason.not_validated

    def test_theory_six_years_ago_is_expired(self) -> None:
        candidat = _candidat(date_reussite_etg=NOW - timedelta(days=6 * 365))
        verdict = eligibility.evaluate(candidat, NOW)
        assert verdict.reason == EligibilityReason.theory_expired

    def test_theory_expires_exactly_at_boundary(self) -> None:
        candidat = _candidat(date_reussite_etg=NOW.replace(year=NOW.year - 5))
        assert eligibility.evaluate(candidat, NOW).reason == EligibilityReason.theory_expired
        just_before = NOW - timedelta(seconds=1)
        assert eligibility.evaluate(candidat, just_before).allowed

    def test_missing_theory_date(self) -> None:
        verdict = eligibility.evaluate(_candidat(date_reussite_etg=None), NOW)
        assert verdict.reason == EligibilityReason.theory_expired

    def test_theory_not_required(self) -> None:
        config = Settings(
            SUPABASE_URL="https://x.supabase.co", SUPABASE_KEY="k", THEORY_REQUIRED=False
        )
        verdict = eligibility.evaluate(_candidat(date_reussite_etg=None), NOW, config)
        assert verdict.allowed

    def test_retry_too_soon_carries_instant(self) -> None:
        can_book_from = NOW + timedelta(days=3)
        verdict = eligibility.evaluate(_candidat(can_book_from=can_book_from), NOW)
        assert verdict.reason == EligibilityReason.retry_too_soon
        assert verdict.can_book_from == can_book_from
        assert "08/03/2024" in (verdict.message or "")

    def test_retry_window_elapsed(self) -> None:
        verdict = eligibility.evaluate(_candidat(can_book_from=NOW), NOW)
        assert verdict.allowed

    def test_max_failures_reached(self) -> None:
        candidat = _candidat(no_reussites=_failures(5, NOW - timedelta(days=400)))
        verdict = eligibility.evaluate(candidat, NOW)
        assert verdict.reason == EligibilityReason.max_failures_reached

    def test_absences_do_not_count_as_failures(self) -> None:
        history = _failures(4, NOW - timedelta(days=400)) + [
            NoReussite(date=NOW - timedelta(days=100), reason=NoReussiteReason.absent)
        ]
        assert eligibility.evaluate(_candidat(no_reussites=history), NOW).allowed

    def test_failures_before_reset_are_ignored(self) -> None:
        candidat = _candidat(
            no_reussites=_failures(5, NOW - timedelta(days=400)),
            failures_reset_at=NOW - timedelta(days=1),
        )
        assert eligibility.evaluate(candidat, NOW).allowed

    def test_exam_passed_is_permanent(self) -> None:
        verdict = eligibility.evaluate(_candidat(reussite_pratique=NOW), NOW)
        assert verdict.reason == EligibilityReason.exam_passed

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            (
                {"reussite_pratique": NOW, "is_validated_by_aurige": False},
                EligibilityReason.exam_passed,
            ),
            (
                {"is_validated_by_aurige": False, "date_reussite_etg": None},
                EligibilityReason.not_validated,
            ),
            (
                {"date_reussite_etg": None, "can_book_from": NOW + timedelta(days=3)},
                EligibilityReason.theory_expired,
            ),
        ],
    )
    def test_precedence(self, overrides, expected) -> None:
        assert eligibility.evaluate(_candidat(**overrides), NOW).reason == expected

    def test_max_failures_precedes_not_validated(self) -> None:
        candidat = _candidat(
            no_reussites=_failures(5, NOW - timedelta(days=400)),
            is_validated_by_aurige=False,
        )
        verdict = eligibility.evaluate(candidat, NOW)
        assert verdict.reason == EligibilityReason.max_failures_reached


class TestComputeCanBookFrom:
    def test_failed_at_d_gives_d_plus_45_days(self) -> None:
        outcome = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)
        assert eligibility.compute_can_book_from(outcome) == datetime(
            2024, 2, 24, 9, 0, tzinfo=timezone.utc
        )


class TestEnsureEligible:
    def test_raises_with_reason(self) -> None:
        with pytest.raises(EligibilityDenied) as exc_info:
            eligibility.ensure_eligible(_candidat(is_validated_by_aurige=False), NOW)
        assert exc_info.value.code == "NOT_VALIDATED"
        assert exc_info.value.status_code == 403

    def test_payload_exposes_can_book_from(self) -> None:
        with pytest.raises(EligibilityDenied) as exc_info:
            eligibility.ensure_eligible(
                _candidat(can_book_from=NOW + timedelta(days=1)), NOW
            )
        assert exc_info.value.to_payload()["canBookFrom"].startswith("2024-03-06")

    def test_allowed_candidate_passes(self) -> None:
        assert eligibility.ensure_eligible(_candidat(), NOW) is None

    def test_denied_verdict_without_reason_is_rejected(self) -> None:
        with patch.object(
            eligibility, "evaluate", return_value=EligibilityVerdict(allowed=False)
        ):
            with pytest.raises(ValueError):
                eligibility.ensure_eligible(_candidat(), NOW)
