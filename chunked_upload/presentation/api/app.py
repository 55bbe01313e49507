"""
FastAPI application factory and configuration.

This module creates and configures the FastAPI application with
error handling, middleware and route registration.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ...application.startup import ApplicationStartup
from ...core.domain.errors import ChunkedUploadError
from ...core.services.uploader import ChunkedUploader
from ...infrastructure.config.models import ApplicationConfig
from .middleware import ErrorHandlerMiddleware, RequestLoggingMiddleware
from .routers import health, uploads


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Starts the application components (or the bare uploader) and stops
    them on shutdown, which aborts every upload still open.
    """
    startup: Optional[ApplicationStartup] = app.state.startup
    uploader: ChunkedUploader = app.state.uploader

    if startup is not None:
        await startup.start_application()
    else:
        await uploader.start()

    try:
        yield
    finally:
        if startup is not None:
            await startup.stop_application()
        else:
            await uploader.stop()


async def chunked_upload_error_handler(request: Request, exc: Any) -> JSONResponse:
    """Map engine errors onto HTTP status codes."""
    error: ChunkedUploadError = exc
    if error.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {error}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {error}")

    return JSONResponse(
        status_code=error.http_status,
        content={
            "error": error.to_dict(),
            "request_id": getattr(request.state, "request_id", None)
        }
    )


def create_app(
    uploader: ChunkedUploader,
    config: ApplicationConfig,
    startup: Optional[ApplicationStartup] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        uploader: Chunked uploader serving the requests
        config: Application configuration
        startup: Component lifecycle to run with the app, if any

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=config.name,
        version=config.version,
        description="Chunked upload assembly service",
        debug=config.debug,
        lifespan=lifespan
    )

    app.state.uploader = uploader
    app.state.config = config
    app.state.startup = startup

    app.add_exception_handler(ChunkedUploadError, chunked_upload_error_handler)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(uploads.router)

    @app.get("/", tags=["root"])
    async def root() -> dict:
        """Root endpoint with basic application information."""
        return {
            "name": app.title,
            "version": app.version,
            "docs_url": "/docs",
            "health_url": "/health"
        }

    logger.debug(f"FastAPI application created: {config.name} v{config.version}")
    return app
