"""
Health & Metrics Endpoints
=============================================================================
CONCEPT: Health Checks

  1. /health (Liveness): "Is the process running?"
     If this fails, the orchestrator restarts the container.

  2. /ready (Readiness): "Can it handle requests?"
     Checks the database. If this fails, traffic is routed elsewhere but
     the container is left alone (the DB might just be restarting).

  3. /metrics: Prometheus text exposition of the counters in
     tracker/observability/metrics.py.
=============================================================================
"""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import settings
from tracker.db.engine import get_db_session
from tracker.observability.logging import get_logger

router = APIRouter(tags=["Health"])

logger = get_logger(__name__)


@router.get("/health")
async def health_check():
    """Liveness probe. Always 200 while the process is alive."""
    return {"status": "ok", "service": settings.app_name}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db_session)):
    """Readiness probe. Runs a trivial query against the database."""
    checks = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.warning("readiness_database_failed", error=str(e))
        checks["database"] = "error"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ok" if all_ok else "degraded",
        "checks": checks,
    }


@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
