"""
Fallback for requests that match no registered route.

Raises a ``NotFoundFault`` instead of answering directly so the response
goes through the same error classifier as every other failure.
"""

from __future__ import annotations

from starlette.types import Receive, Scope, Send

from vocali_api.errors import NotFoundFault


async def not_found(scope: Scope, receive: Receive, send: Send) -> None:
    raise NotFoundFault(f"Route {scope.get('path', '')} not found")
