"""
FastAPI dependency providers for the Vocali API.

Defines reusable Depends() callables for the settings snapshot and for
the request body retained by the body-ingestion stage, plus the client
address resolution shared by the rate limiter and error logging.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from starlette.requests import HTTPConnection

from vocali_common.config import Settings

UNKNOWN_CLIENT = "unknown"


def client_address(conn: HTTPConnection, trusted_hops: int = 1) -> str:
    """Resolve the client address behind *trusted_hops* reverse proxies.

    With ``trusted_hops == 0`` the socket peer is used as-is. Otherwise the
    address appended by the outermost trusted proxy is taken from
    ``X-Forwarded-For`` (the *n*-th entry from the right); when the header
    lists fewer addresses the left-most one is used.
    """
    peer = conn.client.host if conn.client else UNKNOWN_CLIENT
    if trusted_hops <= 0:
        return peer

    forwarded = conn.headers.get("x-forwarded-for")
    if not forwarded:
        return peer

    hops = [addr.strip() for addr in forwarded.split(",") if addr.strip()]
    if not hops:
        return peer
    if len(hops) >= trusted_hops:
        return hops[-trusted_hops]
    return hops[0]


def get_settings(request: Request) -> Settings:
    """Return the settings snapshot the application was built with."""
    return request.app.state.settings


async def get_raw_body(request: Request) -> bytes | None:
    """Return the undecoded body bytes kept for signature verification.

    ``None`` when the request carried no JSON or URL-encoded body.
    """
    return getattr(request.state, "raw_body", None)


async def get_parsed_body(request: Request) -> Any:
    """Return the decoded JSON / form body, or ``None``."""
    return getattr(request.state, "body", None)
