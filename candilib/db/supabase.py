"""Supabase client singleton and storage error translation.

Provides ``get_supabase()`` which returns a lazily-initialized, process-wide
Supabase client using credentials from ``settings``, and ``execute()`` which
runs a PostgREST query and turns transport / API errors into
``StorageFailure``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from candilib.core.config import settings
from candilib.core.exceptions import StorageFailure

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    """Return the singleton Supabase client, creating it on first call."""
    global _client
    if _client is None:
        _client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY,
            options=ClientOptions(
                postgrest_client_timeout=settings.STORAGE_TIMEOUT_SECONDS,
            ),
        )
    return _client


def execute(query: Any, operation: str) -> Any:
    """Execute a PostgREST *query*, raising ``StorageFailure`` on error.

    Each call is a single statement.  A timeout leaves its outcome unknown:
    the database may have applied it before the client gave up.
    """
    try:
        return query.execute()
    except (APIError, httpx.HTTPError) as exc:
        logger.error(
            "storage_failure",
            extra={"operation": operation, "error_message": str(exc)},
        )
        raise StorageFailure(operation) from exc
