"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.metrics import build_metrics_response, instrument_http_request
from app.modules.booking.router import router as booking_router
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import IdentityService
from app.modules.scheduling.router import router as scheduling_router
from app.shared.exceptions import register_exception_handlers
from app.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


BOOKING_ENTRYPOINTS = (
    ("GET", "/scheduling/tutors/{tutor_id}/slots", "Open starts for a tutor on one day"),
    ("GET", "/booking/subscriptions/{subscription_id}/availability", "Windows, sessions and blocks"),
    ("POST", "/booking/preview", "Plan a single or recurring booking"),
    ("POST", "/booking/schedule", "Commit a planned booking"),
    ("GET", "/booking/sessions/my", "Sessions visible to the caller"),
)


def _landing_page_html() -> str:
    """Build minimal landing page for root path."""
    rows = "\n".join(
        f"        <li><code>{method} {settings.api_prefix}{path}</code> {summary}</li>"
        for method, path, summary in BOOKING_ENTRYPOINTS
    )
    return f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{settings.app_name} API</title>
    <style>
      body {{ margin: 0; font-family: Arial, sans-serif; color: #1c2a34; }}
      main {{ max-width: 760px; margin: 48px auto; padding: 0 24px; }}
      nav a {{ margin-right: 12px; color: #174a6e; }}
      li {{ margin: 6px 0; }}
    </style>
  </head>
  <body>
    <main>
      <h1>{settings.app_name} API</h1>
      <p>Tutor availability, recurring series and session booking.</p>
      <nav>
        <a href="/docs">API docs</a>
        <a href="/health">Health</a>
        <a href="/ready">Ready</a>
        <a href="/metrics">Metrics</a>
      </nav>
      <h2>Booking flow</h2>
      <ul>
{rows}
      </ul>
      <p>Slot grid: {settings.slot_step_minutes} minutes. Default zone: {settings.default_timezone}.</p>
    </main>
  </body>
</html>
"""


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info(
        "Starting %s (slot step %s min, default timezone %s)",
        settings.app_name,
        settings.slot_step_minutes,
        settings.default_timezone,
    )

    async with SessionLocal() as session:
        try:
            service = IdentityService(IdentityRepository(session))
            await service.ensure_default_roles()
            await session.commit()
            logger.info("Default roles ensured")
        except Exception:
            await session.rollback()
            logger.exception("Failed during startup initialization")
            raise

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(scheduling_router, prefix=settings.api_prefix)
app.include_router(booking_router, prefix=settings.api_prefix)


@app.get("/", include_in_schema=False, response_class=HTMLResponse)
async def landing_page() -> HTMLResponse:
    """Root page with quick navigation links."""
    return HTMLResponse(content=_landing_page_html())


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness probe endpoint with DB dependency check."""
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "service": settings.app_name,
        "database": "ok",
        "default_timezone": settings.default_timezone,
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
