"""Health check routes."""
import logging
from datetime import datetime

from fastapi import APIRouter, Request

from app.config import settings

router = APIRouter(prefix="/api/v1", tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    monitor = getattr(request.app.state, "fraud_monitor", None)
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "fraud_monitor": {
            "running": bool(monitor and monitor.running),
            "last_run": monitor.last_run.isoformat() if monitor and monitor.last_run else None,
        },
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/")
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
