"""
Body ingestion middleware for the Vocali API.

Buffers and decodes ``application/json`` and
``application/x-www-form-urlencoded`` bodies up to a size ceiling. The raw
bytes are kept on ``request.state.raw_body`` for downstream signature
verification and the decoded value on ``request.state.body``; the body is
then replayed so handlers can still read it normally. Other content types
stream through untouched.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from vocali_api.errors import BodyFormatFault, PayloadTooLargeFault

DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024

JSON_TYPE = "application/json"
FORM_TYPE = "application/x-www-form-urlencoded"


def _media_type(headers: Headers) -> str:
    return headers.get("content-type", "").split(";", 1)[0].strip().lower()


def _reject_constant(token: str) -> Any:
    raise ValueError(f"{token} is not valid JSON")


def decode_json(raw: bytes) -> Any:
    """Strictly decode a JSON body: the top level must be an object or array.

    ``NaN`` and ``Infinity`` are rejected, as is nesting too deep to decode.
    """
    if not raw.strip():
        return {}
    try:
        value = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise BodyFormatFault(detail=str(exc)) from exc
    if not isinstance(value, (dict, list)):
        raise BodyFormatFault(detail="top-level JSON value must be an object or array")
    return value


def decode_form(raw: bytes) -> dict[str, Any]:
    """Decode a URL-encoded body; repeated keys collect into lists."""
    try:
        text = raw.decode("utf-8")
        pairs = parse_qsl(text, keep_blank_values=True, errors="strict")
    except (UnicodeDecodeError, ValueError) as exc:
        raise BodyFormatFault(detail=str(exc)) from exc

    form: dict[str, Any] = {}
    for key, value in pairs:
        if key not in form:
            form[key] = value
        elif isinstance(form[key], list):
            form[key].append(value)
        else:
            form[key] = [form[key], value]
    return form


_DECODERS = {JSON_TYPE: decode_json, FORM_TYPE: decode_form}


class BodyIngestionMiddleware:
    """Bounded JSON / form decoding that also retains the raw payload.

    Args:
        app: Downstream ASGI application.
        max_bytes: Per-request ceiling; larger bodies fail with
            ``PayloadTooLargeFault`` before any decoding is attempted.
    """

    def __init__(self, app: ASGIApp, max_bytes: int = DEFAULT_MAX_BODY_BYTES) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        decoder = _DECODERS.get(_media_type(headers))
        if decoder is None:
            await self.app(scope, receive, send)
            return

        declared = headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise PayloadTooLargeFault()

        raw = await self._read(receive)
        state = scope.setdefault("state", {})
        state["raw_body"] = raw
        state["body"] = decoder(raw)

        await self.app(scope, self._replay(raw, receive), send)

    async def _read(self, receive: Receive) -> bytes:
        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.max_bytes:
                raise PayloadTooLargeFault()
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        return b"".join(chunks)

    @staticmethod
    def _replay(raw: bytes, receive: Receive) -> Receive:
        sent = False

        async def replay() -> Message:
            nonlocal sent
            if sent:
                return await receive()
            sent = True
            return {"type": "http.request", "body": raw, "more_body": False}

        return replay
