"""
Environment-based configuration management for Vocali.

Uses pydantic-settings to load configuration values from environment
variables and .env files. The settings object is frozen: it is captured
once at startup and passed by reference into every component that
needs it.

Required keys have no default. ``load_settings`` validates all of them
at once and reports every missing key in a single error so the process
can refuse to start before any listener is opened.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_ENV_VARS: tuple[str, ...] = ("NODE_ENV", "PORT", "JWT_SECRET", "MONGODB_URI")

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000"

PRODUCTION_RATE_LIMIT = 100
DEVELOPMENT_RATE_LIMIT = 1000


class EnvironmentValidationError(Exception):
    """Raised when required configuration keys are absent or unusable.

    Attributes:
        missing: Names of required keys that are unset or empty.
        invalid: Names of keys that are set but failed validation.
    """

    def __init__(self, missing: list[str], invalid: list[str] | None = None) -> None:
        self.missing = sorted(missing)
        self.invalid = sorted(invalid or [])
        parts = []
        if self.missing:
            parts.append(f"Missing required environment variables: {', '.join(self.missing)}")
        if self.invalid:
            parts.append(f"Invalid environment variables: {', '.join(self.invalid)}")
        super().__init__("; ".join(parts))


class Settings(BaseSettings):
    """Process configuration loaded from environment variables.

    Attributes:
        node_env: Deployment environment (``production``, ``development``, ``test``...).
        port: Bind port for the HTTP server.
        jwt_secret: Signing secret handed to the transcription subsystem.
        mongodb_uri: Persistence connection string handed to the transcription subsystem.
        allowed_origins: Comma-separated CORS allow-list.
        host: Bind address for the HTTP server.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        trust_proxy_hops: Number of reverse-proxy hops trusted for client address resolution.
        rate_limit_max: Explicit per-window request ceiling; overrides the environment default.
        rate_limit_window_seconds: Fixed rate-limit window length.
        max_body_bytes: Ceiling for JSON and URL-encoded request bodies.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ── Required ──
    node_env: str = Field(description="Deployment environment name.")
    port: int = Field(ge=1, le=65535, description="HTTP server bind port.")
    jwt_secret: str = Field(repr=False, description="JWT signing secret.")
    mongodb_uri: str = Field(repr=False, description="MongoDB connection string.")

    # ── HTTP ──
    allowed_origins: str = Field(
        default=DEFAULT_ALLOWED_ORIGINS,
        description="Comma-separated list of allowed CORS origins.",
    )
    host: str = Field(default="0.0.0.0", description="HTTP server bind address.")
    trust_proxy_hops: int = Field(default=1, ge=0, description="Trusted reverse-proxy hops.")
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Maximum JSON / URL-encoded body size in bytes.",
    )

    # ── Rate limiting ──
    rate_limit_max: int | None = Field(default=None, ge=1, description="Requests per window.")
    rate_limit_window_seconds: int = Field(default=15 * 60, ge=1, description="Window length.")

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Logging level.")

    @field_validator("node_env", "port", "jwt_secret", "mongodb_uri", mode="before")
    @classmethod
    def _reject_empty(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"

    @property
    def allowed_origin_list(self) -> list[str]:
        """Allow-list in configuration order, trimmed and de-duplicated."""
        origins: list[str] = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip()
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    @property
    def rate_limit_ceiling(self) -> int:
        if self.rate_limit_max is not None:
            return self.rate_limit_max
        return PRODUCTION_RATE_LIMIT if self.is_production else DEVELOPMENT_RATE_LIMIT


def _env_name(loc: tuple[Any, ...]) -> str:
    return str(loc[0]).upper() if loc else "UNKNOWN"


def load_settings(env_file: str | None = ".env") -> Settings:
    """Build the settings snapshot, validating every required key at once.

    Args:
        env_file: Optional dotenv file merged beneath the process environment.

    Raises:
        EnvironmentValidationError: Listing every missing or invalid key.
    """
    try:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    except ValidationError as exc:
        missing: set[str] = set()
        invalid: set[str] = set()
        for error in exc.errors():
            name = _env_name(error.get("loc", ()))
            value = error.get("input")
            if error["type"] == "missing" or (isinstance(value, str) and not value.strip()):
                missing.add(name)
            else:
                invalid.add(name)
        raise EnvironmentValidationError(sorted(missing), sorted(invalid - missing)) from exc

