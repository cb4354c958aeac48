"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config import settings
from database import engine

router = APIRouter()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return f"down: {str(e)}"
    return "up"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    database = await _database_status()
    return {
        "status": "healthy" if database == "up" else "degraded",
        "api": "up",
        "database": database,
        "feedback_provider": settings.FEEDBACK_PROVIDER,
        "transcription_provider": settings.TRANSCRIPTION_PROVIDER,
        "openai_api_key": "configured" if settings.OPENAI_API_KEY else "missing",
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    database = await _database_status()
    if database != "up":
        return JSONResponse(
            status_code=503,
            content={"ready": False, "database": database},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
