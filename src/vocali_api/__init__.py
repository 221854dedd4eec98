"""
Vocali REST API gateway.

FastAPI-based HTTP front for the transcription service: security headers,
CORS, rate limiting, body ingestion, request logging, uniform error
envelopes, and process lifecycle handling.
"""

__version__ = "1.0.0"
