"""Tests for the slot repository: listing, reservation primitives, admin."""

import threading
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from candilib.core.exceptions import NotFound, SlotConflict, ValidationError
from candilib.models.enums import SlotConflictReason
from candilib.models.place import FreePlaceCriteria, PlaceCreate
from candilib.services import places
from conftest import NOW


class TestFindFreePlaces:
    def test_only_free_visible_upcoming_places(self, make_place, make_centre) -> None:
        centre = make_centre()
        free = make_place(centre_id=centre["id"])
        make_place(centre_id=centre["id"], candidat_id=str(uuid4()))
        make_place(
            centre_id=centre["id"], visible_at=(NOW + timedelta(hours=2)).isoformat()
        )
        make_place(centre_id=centre["id"], date=(NOW - timedelta(hours=1)).isoformat())

        found = list(
            places.find_free_places(FreePlaceCriteria(centre_id=centre["id"]), NOW)
        )
        assert [str(place.id) for place in found] == [free["id"]]

    def test_departement_excludes_inactive_centres(self, make_place, make_centre) -> None:
        active = make_centre(departement="75")
        inactive = make_centre(departement="75", active=False)
        other = make_centre(departement="93")
        wanted = make_place(centre_id=active["id"])
        make_place(centre_id=inactive["id"])
        make_place(centre_id=other["id"])

        found = list(
            places.find_free_places(FreePlaceCriteria(departement="75"), NOW)
        )
        assert [str(place.id) for place in found] == [wanted["id"]]

    def test_ordered_by_date_and_paged(self, make_place, make_centre) -> None:
        centre = make_centre()
        rows = [
            make_place(
                centre_id=centre["id"], date=(NOW + timedelta(days=30 - i)).isoformat()
            )
            for i in range(5)
        ]
        sequence = places.FreePlaces(FreePlaceCriteria(centre_id=centre["id"]), NOW, 2)

        found = [str(place.id) for place in sequence]
        assert found == [row["id"] for row in reversed(rows)]

    def test_restartable_sees_current_state(
        self, make_place, make_centre, fake_supabase
    ) -> None:
        centre = make_centre()
        first = make_place(centre_id=centre["id"])
        make_place(centre_id=centre["id"], date=(NOW + timedelta(days=21)).isoformat())
        sequence = places.find_free_places(FreePlaceCriteria(centre_id=centre["id"]), NOW)
        assert len(list(sequence)) == 2

        places.reserve(UUID(first["id"]), uuid4(), NOW)
        assert len(list(sequence)) == 1

    def test_date_range(self, make_place, make_centre) -> None:
        centre = make_centre()
        make_place(centre_id=centre["id"], date=(NOW + timedelta(days=2)).isoformat())
        inside = make_place(centre_id=centre["id"], date=(NOW + timedelta(days=10)).isoformat())
        make_place(centre_id=centre["id"], date=(NOW + timedelta(days=40)).isoformat())
        criteria = FreePlaceCriteria(
            centre_id=centre["id"],
            begin=NOW + timedelta(days=5),
            end=NOW + timedelta(days=15),
        )
        assert [str(p.id) for p in places.find_free_places(criteria, NOW)] == [inside["id"]]

    def test_count_free_places_by_centre(self, make_place, make_centre) -> None:
        centre = make_centre()
        make_place(centre_id=centre["id"])
        make_place(centre_id=centre["id"])
        make_place(centre_id=centre["id"], candidat_id=str(uuid4()))
        assert places.count_free_places_by_centre(UUID(centre["id"]), NOW) == 2


class TestReserve:
    def test_reserve_free_place(self, make_place) -> None:
        row = make_place()
        candidat_id = uuid4()
        place = places.reserve(UUID(row["id"]), candidat_id, NOW)
        assert place.candidat_id == candidat_id
        assert place.booked_at == NOW

    def test_reserve_booked_place(self, make_place) -> None:
        row = make_place(candidat_id=str(uuid4()))
        with pytest.raises(SlotConflict) as exc_info:
            places.reserve(UUID(row["id"]), uuid4(), NOW)
        assert exc_info.value.reason == SlotConflictReason.slot_already_booked

    def test_reserve_missing_place(self, fake_supabase) -> None:
        with pytest.raises(SlotConflict) as exc_info:
            places.reserve(uuid4(), uuid4(), NOW)
        assert exc_info.value.reason == SlotConflictReason.slot_not_found

    def test_reserve_hidden_place_when_visibility_checked(self, make_place) -> None:
        row = make_place(visible_at=(NOW + timedelta(hours=2)).isoformat())
        with pytest.raises(SlotConflict) as exc_info:
            places.reserve(UUID(row["id"]), uuid4(), NOW, visible_at=NOW)
        assert exc_info.value.reason == SlotConflictReason.slot_not_found

    def test_single_winner_under_concurrency(self, make_place, fake_supabase) -> None:
        row = make_place()
        contenders = [uuid4() for _ in range(16)]
        winners: list[UUID] = []
        losers: list[SlotConflictReason] = []
        barrier = threading.Barrier(len(contenders))

        def attempt(candidat_id: UUID) -> None:
            barrier.wait()
            try:
                places.reserve(UUID(row["id"]), candidat_id, NOW)
                winners.append(candidat_id)
            except SlotConflict as exc:
                losers.append(exc.reason)

        threads = [threading.Thread(target=attempt, args=(c,)) for c in contenders]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(winners) == 1
        assert losers == [SlotConflictReason.slot_already_booked] * 15
        stored = fake_supabase.rows("places")[0]
        assert stored["candidat_id"] == str(winners[0])


class TestRelease:
    def test_release_held_place(self, make_place) -> None:
        candidat_id = uuid4()
        row = make_place(candidat_id=str(candidat_id))
        assert places.release(UUID(row["id"]), candidat_id)
        assert places.get_place(UUID(row["id"])).candidat_id is None

    def test_release_is_idempotent(self, make_place) -> None:
        row = make_place(candidat_id=str(uuid4()))
        assert places.release(UUID(row["id"]))
        assert not places.release(UUID(row["id"]))

    def test_release_by_other_candidate_is_refused(self, make_place) -> None:
        holder = uuid4()
        row = make_place(candidat_id=str(holder))
        assert not places.release(UUID(row["id"]), uuid4())
        assert places.get_place(UUID(row["id"])).candidat_id == holder

    def test_restore_gives_place_back(self, make_place) -> None:
        candidat_id = uuid4()
        booked_at = NOW - timedelta(days=1)
        row = make_place(candidat_id=str(candidat_id), booked_at=booked_at.isoformat())
        places.release(UUID(row["id"]), candidat_id)

        assert places.restore(UUID(row["id"]), candidat_id, booked_at)
        place = places.get_place(UUID(row["id"]))
        assert place.candidat_id == candidat_id
        assert place.booked_at == booked_at

    def test_restore_does_not_take_a_held_place(self, make_place) -> None:
        holder = uuid4()
        row = make_place(candidat_id=str(holder))
        assert not places.restore(UUID(row["id"]), uuid4(), NOW)
        assert places.get_place(UUID(row["id"])).candidat_id == holder


class TestAdministration:
    def test_create_place_sets_visible_at(self, make_centre, fake_supabase) -> None:
        centre = make_centre()
        created_at = datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc)  # 09:00 Paris
        place = places.create_place(
            PlaceCreate(
                centre_id=centre["id"],
                inspecteur_id=uuid4(),
                date=datetime(2024, 3, 12, 8, 30, tzinfo=timezone.utc),
            ),
            now=created_at,
        )
        assert place.candidat_id is None
        assert place.visible_at == datetime(2024, 3, 5, 11, 0, tzinfo=timezone.utc)

    def test_create_place_on_holiday_is_refused(self, make_centre) -> None:
        centre = make_centre()
        with pytest.raises(ValidationError):
            places.create_place(
                PlaceCreate(
                    centre_id=centre["id"],
                    inspecteur_id=uuid4(),
                    date=datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc),
                ),
                now=NOW,
            )

    def test_create_duplicate_place_is_refused(self, make_place) -> None:
        row = make_place()
        with pytest.raises(ValidationError):
            places.create_place(
                PlaceCreate(
                    centre_id=row["centre_id"],
                    inspecteur_id=row["inspecteur_id"],
                    date=datetime.fromisoformat(row["date"]),
                ),
                now=NOW,
            )

    def test_delete_free_place(self, make_place, fake_supabase) -> None:
        row = make_place()
        places.delete_place(UUID(row["id"]))
        assert fake_supabase.rows("places") == []

    def test_delete_booked_place_is_refused(self, make_place) -> None:
        row = make_place(candidat_id=str(uuid4()))
        with pytest.raises(ValidationError):
            places.delete_place(UUID(row["id"]))

    def test_delete_missing_place(self, fake_supabase) -> None:
        with pytest.raises(NotFound):
            places.delete_place(uuid4())
