"""
Mount point for the transcription subsystem.

The transcription endpoints are owned outside this package and supplied
to ``create_app``; this empty router stands in when none is given. Handlers
mounted here sit behind the full middleware chain, rate limiting included.
They can read the retained body through ``get_raw_body`` /
``get_parsed_body``, wrap results with ``success_envelope`` and raise any
``Fault`` subclass to produce an error response.
"""

from __future__ import annotations

from fastapi import APIRouter

PREFIX = "/api/v1/transcriptions"

router = APIRouter(tags=["transcriptions"])
