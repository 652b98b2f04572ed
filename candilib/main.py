"""FastAPI application entry point.

Configures CORS, structured logging, lifespan events (action log accumulator
and APScheduler), domain error mapping, the candidate action log middleware
and router registration.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from candilib.core import clock
from candilib.core.config import settings
from candilib.core.constants import INVALID_PARAMS
from candilib.core.exceptions import CandilibError
from candilib.core.logging import setup_logging
from candilib.models.booking import ActionLogEntry
from candilib.routers import admin, candidat, health
from candilib.scheduler.jobs import shutdown_scheduler, start_scheduler
from candilib.services.action_log import get_accumulator, start_accumulator, stop_accumulator

logger = logging.getLogger(__name__)

CANDIDAT_PREFIX = "/api/v1/candidat"
ADMIN_PREFIX = "/api/v1/admin"


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: startup and shutdown hooks.

    The action log is drained after the scheduler stops so no record queued
    before shutdown is lost.
    """
    setup_logging()
    logger.info("Application starting up")
    start_accumulator()
    start_scheduler()
    yield
    shutdown_scheduler()
    stop_accumulator()
    logger.info("Application shutting down")


app = FastAPI(
    title="Candilib Booking API",
    description="Réservation des places d'examen pratique du permis de conduire",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS Configuration
# ---------------------------------------------------------------------------
_raw_origins = settings.ALLOWED_ORIGINS.strip()
if _raw_origins == "*":
    _allowed_origins: list[str] = ["*"]
else:
    _allowed_origins = [o.strip() for o in _raw_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.exception_handler(CandilibError)
async def candilib_error_handler(request: Request, exc: CandilibError) -> JSONResponse:
    logger.info(
        "request_rejected",
        extra={
            "path": request.url.path,
            "code": exc.code,
            "status_code": exc.status_code,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info(
        "request_invalid",
        extra={"path": request.url.path, "errors": len(exc.errors())},
    )
    return JSONResponse(
        status_code=422,
        content={"success": False, "code": "VALIDATION_ERROR", "message": INVALID_PARAMS},
    )


# ---------------------------------------------------------------------------
# Candidate action log
# ---------------------------------------------------------------------------

@app.middleware("http")
async def record_candidate_action(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    response = await call_next(request)
    accumulator = get_accumulator()
    if accumulator is not None and request.url.path.startswith(CANDIDAT_PREFIX):
        accumulator.record(
            ActionLogEntry(
                candidat_id=request.headers.get("x-candidat-id", ""),
                method=request.method,
                path=request.url.path,
                status=str(response.status_code),
                requested_at=clock.now(),
            )
        )
    return response


# ---------------------------------------------------------------------------
# Router Registration
# ---------------------------------------------------------------------------
app.include_router(health.router, tags=["Health"])
app.include_router(candidat.router, prefix=CANDIDAT_PREFIX, tags=["Candidat"])
app.include_router(admin.router, prefix=ADMIN_PREFIX, tags=["Admin"])
