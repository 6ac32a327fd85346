"""Health check endpoints."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging

from ..core.config import settings
from ..core.database import health_check_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "Weekend Academy API",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/db")
async def database_health():
    """Round trip to the database"""
    if await health_check_db():
        return {"status": "healthy", "database": "reachable"}
    return JSONResponse(
        status_code=503,
        content={"status": "unhealthy", "database": "unreachable"}
    )
