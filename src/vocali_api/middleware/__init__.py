"""
Request pipeline stages for the Vocali API.

One module per stage: security headers, CORS, error classification,
rate limiting, response compression, body ingestion, and request logging.
"""
