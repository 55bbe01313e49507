"""
HTTP middleware components for request/response processing.
"""

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into a JSON 500 response."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.url.path}: {e}")

            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": "INTERNAL",
                        "message": str(e) if request.app.debug else "An unexpected error occurred",
                    },
                    "request_id": getattr(request.state, "request_id", None)
                }
            )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs its duration."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}"
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration * 1000:.1f} ms)"
        )
        return response
