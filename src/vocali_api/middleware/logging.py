"""
Request logging middleware for the Vocali API.

Logs every request that reaches the router with method, path, status and
latency, and feeds the Prometheus request counter and latency histogram.
Logging never changes the response. Requests whose handler raises are
recorded as 500 before the exception continues to the error backstop.

Written as a plain ASGI middleware so response bodies pass through in the
framing the handler produced.
"""

from __future__ import annotations

import time

import structlog
from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from vocali_api.dependencies import client_address

logger = structlog.get_logger(__name__)

# ── Prometheus metrics ──
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests received",
    ["method", "endpoint", "status"],
)
api_request_duration_seconds = Histogram(
    "api_request_duration_seconds",
    "API request latency in seconds",
    ["method", "endpoint"],
)


class LoggingMiddleware:
    """Log every HTTP request with method, path, status, and latency."""

    def __init__(self, app: ASGIApp, trusted_hops: int = 1) -> None:
        self.app = app
        self._trusted_hops = trusted_hops

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        status = 500
        start = time.monotonic()

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            self._record(scope, status, time.monotonic() - start)

    def _record(self, scope: Scope, status: int, duration: float) -> None:
        request = Request(scope)
        endpoint = getattr(scope.get("route"), "path", "unmatched")
        api_requests_total.labels(request.method, endpoint, str(status)).inc()
        api_request_duration_seconds.labels(request.method, endpoint).observe(duration)

        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=status,
            duration_ms=round(duration * 1000, 2),
            ip=client_address(request, self._trusted_hops),
        )
