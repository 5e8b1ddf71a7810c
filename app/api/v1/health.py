"""Health and monitoring API endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.logging_config import get_logger
from app.db.session import get_session_factory
from app.storage import StorageBackend, get_storage


logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/")
async def health_check():
    """Basic health check endpoint.

    Use for load balancer health checks.

    Returns:
        dict: Health status with service info and timestamp
    """
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/storage")
async def storage_health_check(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    storage: StorageBackend = Depends(get_storage),
):
    """Check the metadata database and report backend usage.

    The backend's full_size degrades to 0 when its listing fails, so a
    reachable-but-empty backend and an unreachable one look the same here.

    Returns:
        dict: Database status, datasource name and total stored bytes
    """
    database_ok = True
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        database_ok = False
        logger.warning("database_health_check_failed", error=str(exc))

    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "ok" if database_ok else "unavailable",
        "datasource": storage.name,
        "storage_size": await storage.full_size(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
