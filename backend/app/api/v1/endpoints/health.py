"""
Health Check Endpoints

Endpoints:
- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (data directory and users database reachable)
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Dict, Any
import asyncio
import time

from app.core.config import settings
from app.core.logging_config import logger
from app.modules.storage.record_store import get_record_store


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the users table exists"""
    start = time.time()
    try:
        from app.core.database import get_session_local
        from sqlalchemy import text

        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            try:
                await session.execute(text("SELECT COUNT(*) FROM users"))
                tables_ok = True
            except Exception:
                tables_ok = False

        return {
            "status": "healthy" if tables_ok else "degraded",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "tables_ready": tables_ok,
        }
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "tables_ready": False,
            "error": str(e),
        }


async def check_storage() -> Dict[str, Any]:
    """Check the data directory holding the year partitions"""
    return await get_record_store().check_health()


@router.get("/live")
async def liveness_check():
    """Liveness probe - returns 200 while the process is alive"""
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness probe.

    The work routes need the data directory and the auth routes need the
    users table; 503 unless both are usable.
    """
    storage_check, db_check = await asyncio.gather(
        check_storage(),
        check_database(),
        return_exceptions=True
    )

    if isinstance(storage_check, Exception):
        storage_check = {"status": "unhealthy", "error": str(storage_check)}
    if isinstance(db_check, Exception):
        db_check = {"status": "unhealthy", "error": str(db_check)}

    is_ready = storage_check.get("status") == "healthy" and db_check.get("status") == "healthy"

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "storage": storage_check,
            "database": db_check,
        }
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response)

    return response
