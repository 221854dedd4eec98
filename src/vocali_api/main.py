"""
FastAPI application entry point for the Vocali API gateway.

Creates and configures the FastAPI app, registers routers, middleware and
error handling, and runs it under Uvicorn once the environment has been
validated.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import APIRouter, FastAPI
from prometheus_client import make_asgi_app

from vocali_common.config import (
    REQUIRED_ENV_VARS,
    EnvironmentValidationError,
    Settings,
    load_settings,
)
from vocali_common.logging import configure_logging

from vocali_api import __version__
from vocali_api.lifecycle import ShutdownCoordinator
from vocali_api.middleware.body import BodyIngestionMiddleware
from vocali_api.middleware.compression import CompressionMiddleware
from vocali_api.middleware.cors import add_cors
from vocali_api.middleware.error_handler import ErrorClassifier, ErrorHandlingMiddleware
from vocali_api.middleware.logging import LoggingMiddleware
from vocali_api.middleware.rate_limit import API_PREFIX, FixedWindowStore, RateLimitMiddleware
from vocali_api.middleware.security_headers import SecurityHeadersMiddleware
from vocali_api.routers import health, transcriptions
from vocali_api.routers.not_found import not_found

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    coordinator: ShutdownCoordinator | None = app.state.shutdown_coordinator
    if coordinator is not None:
        coordinator.watch_loop(asyncio.get_running_loop())

    settings: Settings = app.state.settings
    logger.info(
        "server_started",
        port=settings.port,
        environment=settings.node_env,
        health_url=f"http://localhost:{settings.port}/health",
        api_url=f"http://localhost:{settings.port}/api/v1",
    )
    yield
    logger.info("server_stopped")


def create_app(
    settings: Settings,
    *,
    transcription_router: APIRouter | None = None,
    rate_limit_store: FixedWindowStore | None = None,
    coordinator: ShutdownCoordinator | None = None,
) -> FastAPI:
    """Build and return the fully-configured FastAPI application.

    Args:
        settings: Validated configuration snapshot.
        transcription_router: Transcription endpoints, mounted under
            ``/api/v1/transcriptions``.
        rate_limit_store: Counter store for the ``/api`` subtree; built from
            *settings* when omitted.
        coordinator: Receives the event loop so unobserved task exceptions
            terminate the process.
    """
    app = FastAPI(
        title="Vocali API",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    store = rate_limit_store or FixedWindowStore(
        limit=settings.rate_limit_ceiling,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.settings = settings
    app.state.rate_limit_store = store
    app.state.shutdown_coordinator = coordinator

    # ── Routers ──
    app.include_router(health.router)
    app.include_router(
        transcription_router or transcriptions.router,
        prefix=transcriptions.PREFIX,
    )
    app.mount("/metrics", make_asgi_app())
    app.router.default = not_found

    classifier = ErrorClassifier(settings)
    classifier.register(app)

    # ── Middleware (each add wraps the previous, so the last one added runs first) ──
    hops = settings.trust_proxy_hops
    app.add_middleware(LoggingMiddleware, trusted_hops=hops)
    app.add_middleware(BodyIngestionMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(CompressionMiddleware)
    app.add_middleware(RateLimitMiddleware, store=store, prefix=API_PREFIX, trusted_hops=hops)
    app.add_middleware(ErrorHandlingMiddleware, classifier=classifier)
    add_cors(app, settings.allowed_origin_list)
    app.add_middleware(SecurityHeadersMiddleware)

    return app


def main(coordinator: ShutdownCoordinator | None = None) -> None:
    """Validate the environment, then run the API with Uvicorn."""
    configure_logging(
        os.getenv("LOG_LEVEL", "INFO"),
        json_logs=os.getenv("NODE_ENV") == "production",
    )
    coordinator = coordinator or ShutdownCoordinator()
    coordinator.install()

    try:
        settings = load_settings()
    except EnvironmentValidationError as exc:
        logger.error(
            "environment_validation_failed",
            missing=exc.missing,
            invalid=exc.invalid,
        )
        coordinator.startup_failed(exc)
        return

    configure_logging(settings.log_level, json_logs=settings.is_production)
    logger.info("environment_validated", required=list(REQUIRED_ENV_VARS))

    app = create_app(settings, coordinator=coordinator)
    logger.info("server_starting", host=settings.host, port=settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        proxy_headers=False,
    )


if __name__ == "__main__":
    main()
