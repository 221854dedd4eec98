"""Shared fixtures for Vocali API tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog
from fastapi import APIRouter, Depends, FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from vocali_common.config import Settings

from vocali_api.dependencies import get_parsed_body, get_raw_body, get_settings
from vocali_api.errors import (
    HttpFault,
    PersistenceFault,
    ValidationFault,
)
from vocali_api.main import create_app
from vocali_api.responses import success_envelope

# Make helpers in this module importable from test files.
sys.path.append(str(Path(__file__).resolve().parent))

# Keep the developer's shell environment out of the tests.
for _name in ("NODE_ENV", "PORT", "JWT_SECRET", "MONGODB_URI", "ALLOWED_ORIGINS"):
    os.environ.pop(_name, None)

ALLOWED_ORIGIN = "http://localhost:3000"
OTHER_ALLOWED_ORIGIN = "https://app.vocali.example"
REQUIRED_ENV = {
    "NODE_ENV": "test",
    "PORT": "3575",
    "JWT_SECRET": "test-jwt-secret",
    "MONGODB_URI": "mongodb://localhost:27017/vocali-test",
}


# ─── Fake transcription subsystem ─────────────────────────────


class TranscriptionRequest(BaseModel):
    audio_url: str
    language: str = "en"


class DriverError(Exception):
    """Stand-in for a database driver exception."""


def build_transcription_router() -> APIRouter:
    router = APIRouter()

    @router.get("/ping")
    async def ping() -> dict[str, Any]:
        return success_envelope({"pong": True})

    @router.post("/echo")
    async def echo(
        raw: bytes | None = Depends(get_raw_body),
        body: Any = Depends(get_parsed_body),
    ) -> dict[str, Any]:
        return success_envelope({
            "raw": raw.decode("utf-8") if raw is not None else None,
            "body": body,
        })

    @router.post("")
    async def create_transcription(payload: TranscriptionRequest) -> dict[str, Any]:
        return success_envelope(payload.model_dump())

    @router.get("/environment")
    async def environment(current: Settings = Depends(get_settings)) -> dict[str, Any]:
        return success_envelope({"environment": current.node_env})

    @router.get("/large")
    async def large() -> dict[str, Any]:
        return success_envelope({"text": "lorem ipsum " * 500})

    @router.get("/faults/teapot")
    async def teapot() -> None:
        raise HttpFault(418, "I'm a teapot")

    @router.get("/faults/validation")
    async def validation() -> None:
        raise ValidationFault("audio_url is required")

    @router.get("/faults/persistence")
    async def persistence() -> None:
        try:
            raise DriverError("E11000 duplicate key error collection: vocali.transcriptions")
        except DriverError as exc:
            raise PersistenceFault(str(exc)) from exc

    @router.get("/faults/crash")
    async def crash() -> None:
        raise RuntimeError("transcoder exploded")

    return router


# ─── Core fixtures ────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "node_env": "test",
            "port": 3575,
            "jwt_secret": "test-jwt-secret",
            "mongodb_uri": "mongodb://localhost:27017/vocali-test",
            "allowed_origins": f"{ALLOWED_ORIGIN}, {OTHER_ALLOWED_ORIGIN}",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[call-arg]

    return _make


@pytest.fixture()
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture()
def make_client(make_settings: Callable[..., Settings]) -> Callable[..., TestClient]:
    def _make(**overrides: Any) -> TestClient:
        app = create_app(
            make_settings(**overrides),
            transcription_router=build_transcription_router(),
        )
        return TestClient(app)

    return _make


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings, transcription_router=build_transcription_router())


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
