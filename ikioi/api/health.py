"""
Health endpoints.

Lightweight liveness and readiness checks without exposing secrets.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from ikioi.core.database import get_database_url, get_engine
from ikioi.features.goals.service import GoalService, get_goal_service

logger = logging.getLogger("ikioi")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = ["goals", "goal_logs", "reflections"]


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(service: GoalService = Depends(get_goal_service)):
    """Readiness check: goal store reachable (plus required tables when SQL-backed)."""
    if not service.store.ping():
        logger.error("[readyz] goal store unreachable")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "store unreachable"})

    if not get_database_url():
        return {"status": "ok", "store": "memory"}

    try:
        inspector = inspect(get_engine())
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    except Exception as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok", "store": "sql"}
