"""
API Middleware

- Request logging with timing
- Content Security Policy header
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger(__name__)

# The map frontend loads tiles and scripts from third-party origins
PERMISSIVE_CSP = "default-src * 'unsafe-inline' 'unsafe-eval' data: blob:;"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log API requests with timing information"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        if request.url.path.startswith("/api"):
            logger.info(
                "Request completed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response


class ContentSecurityPolicyMiddleware(BaseHTTPMiddleware):
    """Set the Content-Security-Policy header on every response"""

    def __init__(self, app, policy: str = PERMISSIVE_CSP):
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = self.policy
        return response
