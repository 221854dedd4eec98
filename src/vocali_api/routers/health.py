"""
Health check API router for Vocali.

``/health`` reports liveness; ``/health/status`` adds process uptime and
memory statistics. Neither endpoint is rate limited. Both answer HEAD
and tolerate a trailing slash without redirecting.
"""

from __future__ import annotations

import time
from typing import Any

import psutil
from fastapi import APIRouter

from vocali_common.utils import utc_timestamp

from vocali_api import __version__

router = APIRouter(prefix="/health", tags=["health"])

_process = psutil.Process()


def process_uptime() -> float:
    """Seconds since this process started."""
    return max(time.time() - _process.create_time(), 0.0)


def memory_usage() -> dict[str, int]:
    """Resident and virtual memory figures for this process, in bytes."""
    return dict(_process.memory_info()._asdict())


@router.api_route("", methods=["GET", "HEAD"])
@router.api_route("/", methods=["GET", "HEAD"], include_in_schema=False)
async def health_check() -> dict[str, Any]:
    return {
        "success": True,
        "message": "Vocali API is running",
        "timestamp": utc_timestamp(),
        "version": __version__,
    }


@router.api_route("/status", methods=["GET", "HEAD"])
@router.api_route("/status/", methods=["GET", "HEAD"], include_in_schema=False)
async def health_status() -> dict[str, Any]:
    """Detailed status including uptime and memory statistics."""
    return {
        "success": True,
        "status": "healthy",
        "timestamp": utc_timestamp(),
        "uptime": process_uptime(),
        "memory": memory_usage(),
        "version": __version__,
    }
