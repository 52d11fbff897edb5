"""
API Middleware

- Request logging with a request id bound into the structlog context
- Per-caller rate limiting
- Security headers
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional, Tuple

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from liveops.serving.api.dependencies import USER_ID_HEADER

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing information"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

        # Every log line emitted while serving this request carries these
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            caller=request.headers.get(USER_ID_HEADER),
        )

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiter keyed by caller.

    Callers are identified by the ``X-User-Id`` header, falling back to the
    client address. Orchestration probes and metric scrapes are not counted.
    State is per process.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 60,
        exempt_paths: Tuple[str, ...] = ("/api/v1/health", "/metrics"),
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_paths = exempt_paths
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._last_sweep = clock()
        self._lock = asyncio.Lock()

    @staticmethod
    def _client_key(request: Request) -> str:
        user_id = request.headers.get(USER_ID_HEADER)
        if user_id:
            return f"user:{user_id}"
        return f"addr:{request.client.host if request.client else 'unknown'}"

    def _record(self, client_id: str, now: float) -> Optional[int]:
        """
        Count one request for ``client_id`` at ``now``.

        Returns the requests left in the window, or None when the caller is
        over the limit (the refused request is not counted).
        """
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        recent = [t for t in self._requests.get(client_id, ()) if now - t < self.window_seconds]
        if len(recent) >= self.max_requests:
            self._requests[client_id] = recent
            return None

        recent.append(now)
        self._requests[client_id] = recent
        return self.max_requests - len(recent)

    def _sweep(self, now: float) -> None:
        """Forget callers with no request inside the window"""
        idle = [
            client_id for client_id, times in self._requests.items()
            if not times or now - times[-1] >= self.window_seconds
        ]
        for client_id in idle:
            del self._requests[client_id]
        self._last_sweep = now

    @property
    def tracked_callers(self) -> int:
        return len(self._requests)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(self.exempt_paths):
            return await call_next(request)

        client_id = self._client_key(request)

        async with self._lock:
            remaining = self._record(client_id, self._clock())

        if remaining is None:
            logger.warning("Rate limit exceeded", client=client_id)
            return Response(
                content='{"error": "Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Limit": str(self.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        return response
