"""
CORS middleware configuration for the Vocali API.

The allow-list comes from ``ALLOWED_ORIGINS`` and is matched exactly; a
``*`` entry is an ordinary string, not a wildcard. Requests from other
origins are still served; they simply never receive
``Access-Control-Allow-Origin``, so browsers refuse to expose the response
to the calling page. Preflights are always answered with 204 and the
advertised policy, leaving enforcement to the browser.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
ALLOWED_HEADERS = [
    "Origin",
    "X-Requested-With",
    "Content-Type",
    "Accept",
    "Authorization",
    "Cache-Control",
    "Pragma",
]
PREFLIGHT_MAX_AGE = 24 * 60 * 60


class OriginPolicyMiddleware(CORSMiddleware):
    """``CORSMiddleware`` restricted to exact-match origins that never rejects a preflight."""

    def __init__(self, app: Any, **options: Any) -> None:
        super().__init__(app, **options)
        # Starlette treats "*" as allow-all; here it only matches itself.
        self.allow_all_origins = False
        self.preflight_explicit_allow_origin = True
        self.simple_headers.pop("Access-Control-Allow-Origin", None)
        self.preflight_headers.pop("Access-Control-Allow-Origin", None)
        self.preflight_headers["Vary"] = "Origin"

    def is_allowed_origin(self, origin: str) -> bool:
        return origin in self.allow_origins

    def preflight_response(self, request_headers: Headers) -> Response:
        headers = dict(self.preflight_headers)
        origin = request_headers["origin"]
        if self.is_allowed_origin(origin=origin):
            headers["Access-Control-Allow-Origin"] = origin
        return Response(status_code=204, headers=headers)


def add_cors(app: FastAPI, origins: list[str]) -> None:
    """Attach the origin policy for the exact-match allow-list *origins*."""
    app.add_middleware(
        OriginPolicyMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        max_age=PREFLIGHT_MAX_AGE,
    )
