"""
FastAPI dependency injection utilities.

Route handlers reach the uploader and configuration stored on the
application state through these dependencies.
"""

from fastapi import HTTPException, Request, status

from ...core.services.uploader import ChunkedUploader
from ...infrastructure.config.models import ApplicationConfig


def get_uploader(request: Request) -> ChunkedUploader:
    """
    Get the chunked uploader from the request.

    Raises:
        HTTPException: If the uploader is not available
    """
    uploader = getattr(request.app.state, "uploader", None)
    if uploader is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Uploader not available"
        )
    return uploader


def get_config(request: Request) -> ApplicationConfig:
    """
    Get the application configuration from the request.

    Raises:
        HTTPException: If configuration is not available
    """
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application configuration not available"
        )
    return config
