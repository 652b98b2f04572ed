"""Shared test fixtures.

Provides an in-memory Supabase stand-in installed as the process client,
builders for candidate / centre / place rows, and a FastAPI ``test_client``.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")

from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from fake_supabase import FakeSupabase

# A Tuesday, 10:00 UTC, far from any French public holiday.
NOW = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)


@pytest.fixture()
def fake_supabase() -> Generator[FakeSupabase, None, None]:
    """Install an in-memory client behind ``get_supabase``."""
    import candilib.db.supabase as supa_mod

    fake = FakeSupabase()
    previous = supa_mod._client
    supa_mod._client = fake  # type: ignore[assignment]
    try:
        yield fake
    finally:
        supa_mod._client = previous


@pytest.fixture()
def mock_supabase() -> Generator[MagicMock, None, None]:
    """Patch the process client with a bare ``MagicMock``."""
    import candilib.db.supabase as supa_mod

    mock_client = MagicMock()
    with patch.object(supa_mod, "_client", mock_client):
        yield mock_client


@pytest.fixture()
def make_centre(fake_supabase: FakeSupabase) -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": str(uuid4()),
            "nom": f"Centre {len(fake_supabase.tables.get('centres', []))}",
            "label": "Centre d'examen",
            "adresse": "1 rue de la Paix",
            "geoloc": {"lon": 2.35, "lat": 48.85},
            "departement": "93",
            "geo_departement": "93",
            "active": True,
        }
        row.update(overrides)
        fake_supabase.tables.setdefault("centres", []).append(row)
        return row

    return _make


@pytest.fixture()
def make_place(
    fake_supabase: FakeSupabase, make_centre: Callable[..., dict[str, Any]]
) -> Callable[..., dict[str, Any]]:
    default_centre: dict[str, Any] = {}

    def _make(**overrides: Any) -> dict[str, Any]:
        if "centre_id" not in overrides and not default_centre:
            default_centre.update(make_centre())
        row: dict[str, Any] = {
            "id": str(uuid4()),
            "centre_id": default_centre.get("id"),
            "inspecteur_id": str(uuid4()),
            "date": (NOW + timedelta(days=20)).isoformat(),
            "candidat_id": None,
            "booked_at": None,
            "visible_at": (NOW - timedelta(days=1)).isoformat(),
            "created_at": (NOW - timedelta(days=2)).isoformat(),
        }
        row.update(overrides)
        fake_supabase.tables.setdefault("places", []).append(row)
        return row

    return _make


@pytest.fixture()
def make_candidat(fake_supabase: FakeSupabase) -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        suffix = uuid4().hex[:8]
        row: dict[str, Any] = {
            "id": str(uuid4()),
            "code_neph": f"0930{suffix}",
            "nom_naissance": "DUPONT",
            "prenom": "Jeanne",
            "email": f"jeanne.{suffix}@example.fr",
            "departement": "93",
            "date_reussite_etg": (NOW - timedelta(days=365)).isoformat(),
            "no_reussites": [],
            "failures_reset_at": None,
            "is_validated_by_aurige": True,
            "can_book_from": None,
            "reussite_pratique": None,
            "place_id": None,
            "booked_at": None,
        }
        row.update(overrides)
        fake_supabase.tables.setdefault("candidats", []).append(row)
        return row

    return _make


@pytest.fixture()
def test_client(fake_supabase: FakeSupabase) -> Generator[TestClient, None, None]:
    """Provide a FastAPI TestClient with the scheduler kept stopped and the
    clock frozen at ``NOW``."""
    from candilib.main import app

    with (
        patch("candilib.core.clock.now", return_value=NOW),
        patch("candilib.main.setup_logging"),
        patch("candilib.main.start_scheduler"),
        patch("candilib.main.shutdown_scheduler"),
    ):
        with TestClient(app) as client:
            yield client
