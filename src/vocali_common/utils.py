"""
Shared utility functions for Vocali.

Timestamp formatting helpers used by the response envelope, the health
endpoints, and error logging.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp(moment: datetime | None = None) -> str:
    """Return *moment* (default: now) as an ISO-8601 UTC string with milliseconds.

    The format matches ``2024-01-01T12:00:00.000Z``.
    """
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
