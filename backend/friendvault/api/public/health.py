"""
Health check endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from friendvault.infrastructure.database import get_db
from friendvault.infrastructure.redis_client import ping_redis
from friendvault.infrastructure.settings import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Basic health check"""
    return {"status": "ok"}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """
    Readiness check - verifies DB (and Redis when rate limiting is on)

    Returns:
    - 200 if all services are ready
    - 503 if any service is not ready
    """
    checks = {
        "status": "ok",
        "database": "unknown",
        "redis": "unknown",
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except SQLAlchemyError as e:
        checks["database"] = f"error: {type(e).__name__}"
        checks["status"] = "not_ready"

    # Redis only backs rate limiting
    if not get_settings().RATE_LIMIT_ENABLED:
        checks["redis"] = "disabled"
    elif ping_redis():
        checks["redis"] = "connected"
    else:
        checks["redis"] = "disconnected"
        checks["status"] = "not_ready"

    status_code = 200 if checks["status"] == "ok" else 503
    return JSONResponse(status_code=status_code, content=checks)
