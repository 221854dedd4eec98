"""
Response compression for the Vocali API.

Gzip-encodes responses of at least ``minimum_size`` bytes for clients that
accept it. A request carrying ``X-No-Compression`` opts out entirely.
"""

from __future__ import annotations

from starlette.datastructures import Headers
from starlette.middleware.gzip import GZipMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

DEFAULT_MINIMUM_SIZE = 1024


class CompressionMiddleware:
    def __init__(self, app: ASGIApp, minimum_size: int = DEFAULT_MINIMUM_SIZE) -> None:
        self.app = app
        self._gzip = GZipMiddleware(app, minimum_size=minimum_size)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and not Headers(scope=scope).get("x-no-compression"):
            await self._gzip(scope, receive, send)
            return
        await self.app(scope, receive, send)
