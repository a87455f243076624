"""
FastAPI Application Entry Point
=============================================================================
CONCEPT: FastAPI Application Lifecycle

  1. Startup: configure logging, verify the database, bootstrap the
     protected root administrator if BOOTSTRAP_ADMIN_EMAIL is set
  2. Request handling: routers in tracker/api, guarded by
     tracker/auth/dependencies.py
  3. Shutdown: close the connection pool

Domain errors (tracker/errors.py) raised anywhere below a handler are
rendered here, by one exception handler, as

    {"error": <kind>, "message": ..., ...details}

Run with: uvicorn tracker.main:app --reload --host 0.0.0.0 --port 8000
=============================================================================
"""

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from tracker.api.router import api_router
from tracker.auth.identity import normalize_email
from tracker.config import settings
from tracker.db.engine import async_session_maker, engine
from tracker.db.locks import EMPLOYEE_EMAILS
from tracker.db.repositories import TrackerRepository
from tracker.errors import TrackerError
from tracker.observability.logging import get_logger, setup_logging
from tracker.services.notifications import LogEmailSender

logger = get_logger(__name__)


async def bootstrap_admin(repo: TrackerRepository, email: str) -> None:
    """
    Make sure the designated root administrator exists, holds `admin` and
    is protected. Safe to run on every start.
    """
    email = normalize_email(email)
    if not email:
        return

    async with repo.atomic(EMPLOYEE_EMAILS):
        user, created = await repo.get_or_create_user(email=email, name=email.split("@", 1)[0])
        if not (user.protected and user.role == "admin"):
            await repo.mark_protected_admin(user)
    logger.info("admin_bootstrapped", created=created)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Everything before `yield` runs on startup.
    Everything after `yield` runs on shutdown.
    """
    # === STARTUP ===
    setup_logging()
    logger.info("app_starting", app_name=settings.app_name, env=settings.app_env)

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_connected")

    if settings.bootstrap_admin_email:
        async with async_session_maker() as session:
            await bootstrap_admin(TrackerRepository(session), settings.bootstrap_admin_email)

    yield

    # === SHUTDOWN ===
    await engine.dispose()
    logger.info("app_stopped")


# =============================================================================
# Create the FastAPI application
# =============================================================================
app = FastAPI(
    title=settings.app_name,
    description=(
        "Task and employee tracker: role-based access control over tasks, "
        "employees, roles, goals and notifications, with bulk reconciliation "
        "of task names and employee/department assignments."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# Swap for a real transport at deployment; see tracker/services/notifications.py
app.state.email_sender = LogEmailSender()


# =============================================================================
# Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_context(request: Request, call_next):
    """Give every log line of a request the same request_id and path."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request.headers.get("X-Request-ID") or str(uuid.uuid4()),
        method=request.method,
        path=request.url.path,
    )
    return await call_next(request)


# =============================================================================
# Error rendering
# =============================================================================
@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", error=exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 shape as domain validation errors."""
    invalid = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": "Malformed request", "invalid": invalid},
    )


# =============================================================================
# Mount Routers
# =============================================================================
app.include_router(api_router)
