"""
Middleware for request logging and error handling.

Provides:
- Request/response logging
- Request ID generation
- Last-resort error response
- Processing time headers
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import ENGINE_VERSION
from .logging_config import safe_log

logger = logging.getLogger("bankroll_api.middleware")


def new_request_id(now: float) -> str:
    return f"req_{int(now * 1000)}_{os.urandom(4).hex()}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request and tags the response with id, version and timing headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID") or new_request_id(start_time)
        path = request.url.path
        method = request.method
        client_ip = request.client.host if request.client else "unknown"

        request.state.request_id = request_id

        logger.info(safe_log(
            f"[{request_id}] {method} {path} | "
            f"Client: {client_ip} | "
            f"Started at: {datetime.now(timezone.utc).isoformat()}"
        ))

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(safe_log(
                f"[{request_id}] CRASHED | "
                f"Error: {str(e)} | "
                f"Duration: {duration:.4f}s | "
                f"Path: {path}"
            ))
            logger.exception(e)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "request_id": request_id,
                    "message": str(e)
                },
                headers={
                    "X-Request-ID": request_id,
                    "X-Engine-Version": ENGINE_VERSION
                }
            )

        duration = time.time() - start_time
        logger.info(safe_log(
            f"[{request_id}] COMPLETED | "
            f"Status: {response.status_code} | "
            f"Duration: {duration:.4f}s"
        ))

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Engine-Version"] = ENGINE_VERSION
        response.headers["X-Processing-Time"] = f"{duration:.4f}"
        return response
