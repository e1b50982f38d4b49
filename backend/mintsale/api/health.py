from fastapi import APIRouter
from datetime import datetime, timezone

from tortoise import connections

from mintsale.services.sale_service import sale_service

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready", summary="Readiness check")
async def readiness_check():
    """
    Readiness check - verifies the sale engine is loaded and the database answers.
    """
    checks = {}

    try:
        engine = sale_service.engine
        checks["sale_engine"] = True
        checks["phase"] = engine.current_phase().value
    except Exception:
        checks["sale_engine"] = False

    try:
        await connections.get("default").execute_query("SELECT 1")
        checks["database"] = True
    except Exception:
        checks["database"] = False

    all_healthy = checks["sale_engine"] and checks["database"]

    return {
        "status": "ready" if all_healthy else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
