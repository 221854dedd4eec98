"""
Rate limiting middleware for the Vocali API.

Fixed-window request counting keyed by client address, applied only to
the ``/api`` subtree (health and metrics are never limited).

Windows are anchored at each client's first request and reset wholesale
when they expire. Because the window is fixed rather than sliding, a
client that bursts at the very end of one window and again at the start
of the next can get up to twice the ceiling through in a short span.
That is accepted behaviour of the algorithm.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from vocali_api.dependencies import client_address
from vocali_api.errors import ErrorRecord, FaultKind, RateLimitFault
from vocali_api.responses import error_envelope

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW = 15 * 60  # seconds
API_PREFIX = "/api"


@dataclass
class RateLimitWindow:
    """Counter state for one client identity."""

    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float


class FixedWindowStore:
    """In-memory fixed-window counters, one ``RateLimitWindow`` per key.

    ``hit`` performs the read-modify-write under a lock so concurrent
    requests from one client can never push ``count`` past ``limit``.
    Rejected hits do not increment the counter. Expired windows are swept
    at most once per window duration.

    Args:
        limit: Requests allowed per window.
        window_seconds: Window duration.
        clock: Wall-clock source, injectable for tests.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = DEFAULT_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, RateLimitWindow] = {}
        self._next_sweep = clock() + window_seconds

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for *key* and decide whether it may proceed."""
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)

            window = self._windows.get(key)
            if window is None or now >= window.window_start + self.window_seconds:
                window = RateLimitWindow(count=0, window_start=now)
                self._windows[key] = window

            allowed = window.count < self.limit
            if allowed:
                window.count += 1

            return RateLimitDecision(
                allowed=allowed,
                limit=self.limit,
                remaining=self.limit - window.count,
                reset_after=max(window.window_start + self.window_seconds - now, 0.0),
            )

    def reset(self, key: str | None = None) -> None:
        """Forget the window for *key*, or every window when omitted."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, window in self._windows.items()
            if now >= window.window_start + self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds


def describe_window(seconds: float) -> str:
    """Render a window length the way it is advertised to clients, e.g. ``15 minutes``."""
    if seconds % 3600 == 0:
        value, unit = int(seconds // 3600), "hour"
    elif seconds % 60 == 0:
        value, unit = int(seconds // 60), "minute"
    else:
        value, unit = int(math.ceil(seconds)), "second"
    return f"{value} {unit}" + ("" if value == 1 else "s")


def _is_limited_path(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply ``FixedWindowStore`` to requests under *prefix*.

    Over-limit requests are answered with 429 here and never reach later
    stages. Every limited-subtree response carries the standard
    ``RateLimit-*`` headers.
    """

    def __init__(
        self,
        app: Any,
        store: FixedWindowStore,
        prefix: str = API_PREFIX,
        trusted_hops: int = 1,
    ) -> None:
        super().__init__(app)
        self._store = store
        self._prefix = prefix.rstrip("/")
        self._trusted_hops = trusted_hops
        self._retry_after = describe_window(store.window_seconds)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        path = request.url.path
        if not _is_limited_path(path, self._prefix):
            return await call_next(request)

        key = client_address(request, self._trusted_hops)
        decision = self._store.hit(key)

        if decision.allowed:
            response = await call_next(request)
        else:
            logger.warning(
                "rate_limit_exceeded",
                ip=key,
                method=request.method,
                path=path,
                limit=decision.limit,
            )
            response = self._reject(path, decision)

        self._apply_headers(response, decision)
        return response

    def _reject(self, path: str, decision: RateLimitDecision) -> JSONResponse:
        fault = RateLimitFault()
        record = ErrorRecord(FaultKind.RATE_LIMIT, fault.message, 429)
        content = error_envelope(record, path)
        content["retryAfter"] = self._retry_after
        return JSONResponse(
            status_code=429,
            content=content,
            headers={"Retry-After": str(math.ceil(decision.reset_after))},
        )

    def _apply_headers(self, response: Response, decision: RateLimitDecision) -> None:
        response.headers["RateLimit-Policy"] = f"{decision.limit};w={int(self._store.window_seconds)}"
        response.headers["RateLimit-Limit"] = str(decision.limit)
        response.headers["RateLimit-Remaining"] = str(decision.remaining)
        response.headers["RateLimit-Reset"] = str(math.ceil(decision.reset_after))
