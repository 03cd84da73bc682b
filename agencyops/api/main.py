"""FastAPI application entry point for AgencyOps.

Logging is configured once here. Every request gets a ``request_id``
bound into structlog's context, so router events (lead converted, plan
confirmed, ...) carry it without passing it around.
"""

import logging
import time

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from agencyops.api.billing_plans import router as billing_plans_router
from agencyops.api.deployments import router as deployments_router
from agencyops.api.employers import letters_router
from agencyops.api.employers import router as employers_router
from agencyops.api.leads import router as leads_router
from agencyops.api.quota import router as quota_router
from agencyops.config.settings import Environment, Settings, get_settings
from agencyops.models.common import new_uuid7

APP_VERSION = "0.1.0"

settings = get_settings()


def configure_logging(settings: Settings) -> None:
    """Console output in dev, JSON lines elsewhere; level from settings."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.ENVIRONMENT == Environment.DEV
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.LOG_LEVEL.value),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=settings.LOG_LEVEL.value)


configure_logging(settings)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

# --- FastAPI app ---
app = FastAPI(
    title="AgencyOps API",
    description="Back office for a migrant-worker placement agency.",
    version=APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.ENVIRONMENT == Environment.DEV else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(new_uuid7())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.debug(
        "request_handled",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response


# --- Routers ---
app.include_router(leads_router)
app.include_router(employers_router)
app.include_router(letters_router)
app.include_router(deployments_router)
app.include_router(billing_plans_router)
app.include_router(quota_router)


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe; reports degraded when the database is unreachable."""
    checks: dict[str, bool] = {"api": True}

    try:
        from agencyops.db.session import async_session_factory
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_database_unreachable", error=str(exc))
        checks["database"] = False

    all_ok = all(checks.values())

    return {
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "AgencyOps",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
