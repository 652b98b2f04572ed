"""Tests for the archive ledger and its aggregation queries."""

from datetime import timedelta
from uuid import UUID, uuid4

from candilib.models.enums import ArchiveReason
from candilib.models.place import Place
from candilib.services import archive
from conftest import NOW


def _place(centre_id: UUID, days: int) -> Place:
    return Place(
        id=uuid4(),
        centre_id=centre_id,
        inspecteur_id=uuid4(),
        date=NOW + timedelta(days=days),
        booked_at=NOW - timedelta(days=3),
    )


class TestArchivePlace:
    def test_snapshot_is_appended(self, fake_supabase) -> None:
        centre_id, candidat_id = uuid4(), uuid4()
        place = _place(centre_id, 5)

        archived = archive.archive_place(
            place, candidat_id, ArchiveReason.candidate_cancel, "jeanne@example.fr", NOW
        )

        assert archived.place_id == place.id
        assert archived.candidat_id == candidat_id
        assert archived.date == place.date
        assert archived.booked_at == place.booked_at
        assert archived.archived_at == NOW
        assert archived.is_candilib is True
        assert len(fake_supabase.rows("archived_places")) == 1

    def test_outcome_reasons_are_not_candilib(self, fake_supabase) -> None:
        archived = archive.archive_place(
            _place(uuid4(), 0), uuid4(), ArchiveReason.exam_failed, "admin@example.fr", NOW
        )
        assert archived.is_candilib is False

    def test_find_by_candidat_in_archive_order(self, fake_supabase) -> None:
        candidat_id = uuid4()
        first = archive.archive_place(
            _place(uuid4(), 1), candidat_id, ArchiveReason.replaced_by_new_booking,
            "jeanne@example.fr", NOW,
        )
        second = archive.archive_place(
            _place(uuid4(), 2), candidat_id, ArchiveReason.candidate_cancel,
            "jeanne@example.fr", NOW + timedelta(hours=1),
        )
        archive.archive_place(
            _place(uuid4(), 2), uuid4(), ArchiveReason.candidate_cancel,
            "other@example.fr", NOW,
        )

        found = archive.find_by_candidat(candidat_id)
        assert [item.id for item in found] == [first.id, second.id]


class TestAggregation:
    def test_count_by_outcome_and_centre(self, fake_supabase) -> None:
        centre_id = uuid4()
        for reason in (
            ArchiveReason.exam_passed,
            ArchiveReason.exam_failed,
            ArchiveReason.exam_failed,
            ArchiveReason.absent,
            ArchiveReason.candidate_cancel,
        ):
            archive.archive_place(_place(centre_id, 1), uuid4(), reason, "a@b.fr", NOW)
        archive.archive_place(
            _place(uuid4(), 1), uuid4(), ArchiveReason.exam_passed, "a@b.fr", NOW
        )

        result = archive.count_by_outcome_and_centre(centre_id)

        assert result.counts == {
            ArchiveReason.exam_passed: 1,
            ArchiveReason.exam_failed: 2,
            ArchiveReason.absent: 1,
        }

    def test_count_by_reason_and_period_filters_exam_date(self, fake_supabase) -> None:
        centre_id = uuid4()
        for days in (1, 10, 30):
            archive.archive_place(
                _place(centre_id, days), uuid4(), ArchiveReason.exam_failed, "a@b.fr", NOW
            )

        count = archive.count_by_reason_and_period(
            ArchiveReason.exam_failed,
            begin=NOW + timedelta(days=5),
            end=NOW + timedelta(days=20),
        )
        assert count == 1
