"""
Health check and version endpoints
"""
from fastapi import APIRouter
from attendance_engine.core.config import settings
from attendance_engine.core.constants import SERVICE_NAME

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe"""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
    }


@router.get("/version")
async def get_version():
    """
    Application version and metadata

    Returns:
        Service name, version, environment and organization timezone
    """
    return {
        "service": SERVICE_NAME,
        "version": settings.VERSION or "1.0.0",
        "env": settings.APP_ENV,
        "tz": settings.ORG_TIMEZONE,
    }
