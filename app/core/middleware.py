"""
Request logging and security header middleware.
"""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app.api.requests")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with a request id, status code and timing.

    The request id is taken from an incoming ``X-Request-ID`` header when
    present, otherwise generated, and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        client_ip = request.client.host if request.client else "unknown"

        logger.info(f"[{request_id}] {request.method} {request.url.path} from {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} failed "
                f"after {process_time:.3f}s: {e}",
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} in {process_time:.3f}s"
        )
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add common security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(
            {
                "X-Content-Type-Options": "nosniff",
                "X-Frame-Options": "DENY",
                "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
                "Referrer-Policy": "strict-origin-when-cross-origin",
            }
        )
        return response
