"""
Response envelope builders for the Vocali API.

Every JSON body produced by the gateway, and by handlers mounted behind
it, uses one of two shapes::

    {"success": true,  "data": {...},  "timestamp": "..."}
    {"success": false, "error": {"message", "code", "timestamp", "path", ...}}
"""

from __future__ import annotations

from typing import Any

from vocali_common.utils import utc_timestamp

from vocali_api.errors import ErrorRecord


def success_envelope(data: Any) -> dict[str, Any]:
    """Wrap a handler result in the success envelope."""
    return {"success": True, "data": data, "timestamp": utc_timestamp()}


def error_envelope(
    record: ErrorRecord,
    path: str,
    *,
    stack: str | None = None,
) -> dict[str, Any]:
    """Render *record* as the failure envelope for *path*.

    ``detail`` and ``stack`` are only present when provided.
    """
    error: dict[str, Any] = {
        "message": record.message,
        "code": record.status_code,
        "timestamp": utc_timestamp(),
        "path": path,
    }
    if record.detail is not None:
        error["detail"] = record.detail
    if stack is not None:
        error["stack"] = stack
    return {"success": False, "error": error}
