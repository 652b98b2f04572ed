"""Health check endpoint.

Returns service status including database connectivity, scheduler state and
the number of candidate action records waiting to be flushed.
"""

import logging
from typing import Any

from fastapi import APIRouter
from starlette.responses import JSONResponse

from candilib.core.constants import TABLE_PLACES
from candilib.db.supabase import get_supabase
from candilib.scheduler.jobs import is_scheduler_running
from candilib.services.action_log import get_accumulator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> Any:
    """Return health status including a real Supabase connectivity test.

    Returns 200 OK when healthy, 503 when the database is down.
    """
    db_status = "disconnected"

    try:
        client = get_supabase()
        result = client.table(TABLE_PLACES).select("id").limit(1).execute()
        if result is not None:
            db_status = "connected"
    except Exception:
        logger.warning("health_check_storage_unreachable", exc_info=True)

    accumulator = get_accumulator()

    payload: dict[str, Any] = {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "scheduler": "running" if is_scheduler_running() else "stopped",
        "pending_action_logs": len(accumulator) if accumulator is not None else 0,
    }

    if db_status != "connected":
        return JSONResponse(status_code=503, content=payload)

    return payload
