"""
Terminal error handling for the Vocali API.

``ErrorClassifier`` turns any fault into the failure envelope. It is wired
in twice over the same code path:

* as exception handlers, for faults raised by route handlers and the
  not-found handler;
* as ``ErrorHandlingMiddleware``, an ASGI backstop just inside the CORS
  stage, for faults raised by middleware stages or escaping a handler.

Every fault is logged with request context before the response is
written, regardless of how much the client gets to see.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from vocali_common.config import Settings
from vocali_common.utils import utc_timestamp

from vocali_api.dependencies import client_address
from vocali_api.errors import Fault, FaultKind, classify, format_stack, normalize
from vocali_api.responses import error_envelope

logger = structlog.get_logger(__name__)


class ErrorClassifier:
    """Classify faults and render the uniform failure envelope.

    Args:
        settings: Decides redaction (production hides raw messages and
            stack traces) and the proxy hops used to log the client address.
    """

    def __init__(self, settings: Settings) -> None:
        self._production = settings.is_production
        self._trusted_hops = settings.trust_proxy_hops

    def register(self, app: FastAPI) -> None:
        """Install the classifier as the app's exception handlers."""
        app.add_exception_handler(Fault, self.handle)
        app.add_exception_handler(StarletteHTTPException, self.handle)
        app.add_exception_handler(RequestValidationError, self.handle)

    async def handle(self, request: Request, exc: Exception) -> Response:
        """Exception-handler entry point. Never raises."""
        try:
            return self.render(request, exc)
        except Exception:
            logger.exception("error_response_failed", path=request.url.path)
            return PlainTextResponse("Internal Server Error", status_code=500)

    def render(self, request: Request, exc: BaseException) -> JSONResponse:
        fault = normalize(exc)
        record = classify(fault, production=self._production)
        self._log(request, fault, record.status_code)

        stack = None
        if record.kind is FaultKind.UNCLASSIFIED and record.status_code == 500 and not self._production:
            stack = format_stack(fault)

        content = error_envelope(record, request.url.path, stack=stack)
        headers = getattr(exc, "headers", None)
        return JSONResponse(status_code=record.status_code, content=content, headers=headers)

    def _log(self, request: Request, fault: Fault, status: int) -> None:
        context: dict[str, Any] = {
            "kind": fault.kind.value,
            "status": status,
            "message": fault.message,
            "method": request.method,
            "path": request.url.path,
            "ip": client_address(request, self._trusted_hops),
            "user_agent": request.headers.get("user-agent"),
            "timestamp": utc_timestamp(),
        }
        if fault.detail:
            context["detail"] = fault.detail
        if status >= 500:
            logger.error("request_failed", exc_info=fault.__cause__ or fault, **context)
        else:
            logger.warning("request_failed", **context)


class ErrorHandlingMiddleware:
    """ASGI backstop routing every escaping exception through ``ErrorClassifier``."""

    def __init__(self, app: ASGIApp, classifier: ErrorClassifier) -> None:
        self.app = app
        self.classifier = classifier

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            request = Request(scope)
            if response_started:
                logger.error(
                    "request_failed_after_response_started",
                    method=request.method,
                    path=request.url.path,
                    exc_info=exc,
                )
                raise
            response = await self.classifier.handle(request, exc)
            await response(scope, receive, send)
