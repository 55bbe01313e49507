"""
Health check API endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....core.services.uploader import ChunkedUploader
from ....infrastructure.config.models import ApplicationConfig
from ..dependencies import get_config, get_uploader

router = APIRouter()


@router.get("")
async def health_check(
    uploader: ChunkedUploader = Depends(get_uploader),
    config: ApplicationConfig = Depends(get_config)
) -> Dict[str, Any]:
    """
    Health check with uploader status.

    Reports unhealthy while the uploader is not running.
    """
    uploader_health = await uploader.check_health()

    return {
        "status": "healthy" if uploader_health["healthy"] else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "application": {
            "name": config.name,
            "version": config.version,
            "environment": config.environment
        },
        "uploader": uploader_health,
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """Liveness probe."""
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
