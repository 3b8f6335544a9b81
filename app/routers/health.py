"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime, timezone
import logging

from app.config import settings
from app.database import get_db
from app.models.schemas import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with the database status and whether remote
        analysis is configured.  An unconfigured remote service does not
        degrade the status: analysis and chat fall back to local rules.
    """
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        db_status = "error"

    remote_status = "configured" if settings.remote_configured else "disabled"

    return HealthCheckResponse(
        status="healthy" if db_status == "ok" else "degraded",
        database=db_status,
        remote_analysis=remote_status,
        timestamp=datetime.now(timezone.utc),
    )
