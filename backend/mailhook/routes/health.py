"""
Health check endpoint.
"""
from datetime import datetime, timezone
from fastapi import APIRouter

from mailhook.config import get_settings

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring. Reports whether webhooks have a public URL."""
    settings = get_settings()
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "notification_url": settings.notification_url,
    }
