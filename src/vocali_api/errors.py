"""
Fault taxonomy for the Vocali API.

Every abnormal condition raised by a pipeline stage or a route handler is
expressed as a ``Fault`` subclass carrying an explicit ``kind``. Foreign
exceptions (Starlette, FastAPI, pydantic, json) are folded into the same
closed set by ``normalize`` before ``classify`` turns them into an
``ErrorRecord``, the only input the response formatter ever sees.
"""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException


class FaultKind(str, Enum):
    """Discriminant for the closed set of faults."""

    HTTP = "http"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    VALIDATION = "validation"
    BODY_FORMAT = "body_format"
    PERSISTENCE = "persistence"
    UNCLASSIFIED = "unclassified"


class Fault(Exception):
    """Base class for every fault raised inside the request pipeline.

    Args:
        message: Human-readable description. Defaults to the class message.
        status_code: Explicit HTTP status; when set it wins over the kind.
        detail: Extra diagnostic text.
    """

    kind: ClassVar[FaultKind] = FaultKind.UNCLASSIFIED
    default_message: ClassVar[str] = "Internal server error"
    default_status: ClassVar[int | None] = None

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.status_code = status_code if status_code is not None else self.default_status
        self.detail = detail
        super().__init__(self.message)


class HttpFault(Fault):
    """Fault with an explicit HTTP status code."""

    kind = FaultKind.HTTP

    def __init__(self, status_code: int, message: str | None = None, *, detail: str | None = None) -> None:
        super().__init__(message, status_code=status_code, detail=detail)


class NotFoundFault(Fault):
    kind = FaultKind.NOT_FOUND
    default_message = "Not found"
    default_status = 404


class RateLimitFault(Fault):
    kind = FaultKind.RATE_LIMIT
    default_message = "Too many requests from this IP, please try again later"
    default_status = 429


class PayloadTooLargeFault(Fault):
    kind = FaultKind.PAYLOAD_TOO_LARGE
    default_message = "Request entity too large"
    default_status = 413


class ValidationFault(Fault):
    """Input failed validation; the message is reported as ``detail``."""

    kind = FaultKind.VALIDATION
    default_message = "Validation failed"


class BodyFormatFault(Fault):
    """Request body could not be decoded."""

    kind = FaultKind.BODY_FORMAT
    default_message = "Invalid JSON format"


class PersistenceFault(Fault):
    """Storage-layer failure. Driver text never reaches the client."""

    kind = FaultKind.PERSISTENCE
    default_message = "Database error"


class UnclassifiedFault(Fault):
    kind = FaultKind.UNCLASSIFIED


@dataclass(frozen=True)
class ErrorRecord:
    """Normalized, client-facing view of a fault."""

    kind: FaultKind
    message: str
    status_code: int
    detail: str | None = None


def _format_validation_errors(errors: Any) -> str:
    parts = []
    for error in errors:
        loc = ".".join(str(item) for item in error.get("loc", ()))
        msg = error.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def normalize(exc: BaseException) -> Fault:
    """Fold *exc* into the fault taxonomy.

    Unknown exceptions become an ``UnclassifiedFault`` chained to the
    original so its traceback stays available.
    """
    if isinstance(exc, Fault):
        return exc
    if isinstance(exc, StarletteHTTPException):
        return HttpFault(exc.status_code, str(exc.detail))
    if isinstance(exc, RequestValidationError):
        return ValidationFault(_format_validation_errors(exc.errors()))
    if isinstance(exc, ValidationError):
        return ValidationFault(_format_validation_errors(exc.errors()))
    if isinstance(exc, json.JSONDecodeError):
        return BodyFormatFault(detail=str(exc))

    fault = UnclassifiedFault(str(exc) or exc.__class__.__name__)
    fault.__cause__ = exc
    return fault


def classify(fault: Fault, *, production: bool) -> ErrorRecord:
    """Map a fault to the status and message the client will see.

    First match wins:

    1. explicit status code
    2. validation failure (400, generic message, detail kept)
    3. body decoding failure (400, fixed message, no detail)
    4. persistence failure (500, generic message)
    5. anything else (500, raw message outside production)
    """
    if fault.status_code is not None:
        return ErrorRecord(fault.kind, fault.message, fault.status_code)
    if fault.kind is FaultKind.VALIDATION:
        return ErrorRecord(fault.kind, "Validation failed", 400, detail=fault.detail or fault.message)
    if fault.kind is FaultKind.BODY_FORMAT:
        return ErrorRecord(fault.kind, "Invalid JSON format", 400)
    if fault.kind is FaultKind.PERSISTENCE:
        return ErrorRecord(fault.kind, "Database error", 500)

    message = "Internal server error" if production else fault.message
    return ErrorRecord(fault.kind, message, 500)


def format_stack(fault: Fault) -> str:
    """Return the traceback of the exception that caused *fault*."""
    origin = fault.__cause__ or fault
    return "".join(traceback.format_exception(type(origin), origin, origin.__traceback__))
