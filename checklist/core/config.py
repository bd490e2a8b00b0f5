from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ConfigurationError(Exception):
    """Raised when the environment cannot produce valid settings."""


def _load_env_file() -> None:
    """Load ENV_FILE (or ./.env) when it exists; real env vars take precedence."""
    explicit = os.getenv("ENV_FILE")
    if explicit:
        env_file = Path(explicit)
        if not env_file.is_file():
            raise ConfigurationError(f"ENV_FILE does not exist: {explicit}")
        load_dotenv(env_file, override=False)
        return

    default = Path.cwd() / ".env"
    if default.is_file():
        load_dotenv(default, override=False)


Environment = Literal["development", "test", "production"]
LogFormat = Literal["json", "console"]

DEFAULT_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


class Settings(BaseModel):
    app_name: str = Field(default="Checklist Backend")
    app_env: Environment = Field(default="development")
    debug: bool = Field(default=True)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    database_url: str = Field(default="sqlite:///./checklist.db")
    testing: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="json")
    log_file: str | None = Field(default=None)
    sqlalchemy_echo: bool | None = Field(default=None)  # None = auto (debug mode)
    local_api_key: str | None = Field(default=None)
    auth_require_user: bool = Field(default=False)
    db_auto_init: bool = Field(default=True)
    db_auto_seed: bool = Field(default=True)
    resolution_cache_enabled: bool = Field(default=True)
    resolution_cache_ttl_s: int = Field(default=300, ge=1)
    resolution_cache_max_entries: int = Field(default=10_000, ge=1)
    partial_match_min_length: int = Field(default=8, ge=1)
    cors_allow_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    cors_allow_credentials: bool = Field(default=True)


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _to_bool_or_none(value: str | None) -> bool | None:
    """Parse boolean from env var, return None if not set (for auto behavior)."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return None


def _to_int(name: str, *, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _normalize_env(value: str | None) -> Environment:
    if value is None:
        return "development"
    lowered = value.strip().lower()
    if lowered == "development":
        return "development"
    if lowered == "test":
        return "test"
    if lowered == "production":
        return "production"
    return "development"


def _normalize_log_format(value: str | None, app_env: Environment) -> LogFormat:
    if value is not None:
        lowered = value.strip().lower()
        if lowered == "console":
            return "console"
        if lowered == "json":
            return "json"
    return "console" if app_env == "development" else "json"


def _parse_csv_list(value: str | None, *, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    items = [part.strip() for part in value.split(",")]
    normalized = [item for item in items if item]
    return normalized or list(default)


def load_settings() -> Settings:
    _load_env_file()

    app_env = _normalize_env(os.getenv("APP_ENV"))
    default_debug = app_env != "production"
    default_testing = app_env == "test"
    default_db_auto_init = app_env == "development"
    default_db_auto_seed = app_env == "development"

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        database_url = (
            "sqlite:///./checklist_test.db" if app_env == "test" else "sqlite:///./checklist.db"
        )

    return Settings(
        app_name=os.getenv("APP_NAME", "Checklist Backend"),
        app_env=app_env,
        debug=_to_bool(os.getenv("DEBUG"), default=default_debug),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_to_int("PORT", default=8000),
        database_url=database_url,
        testing=_to_bool(os.getenv("TESTING"), default=default_testing),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=_normalize_log_format(os.getenv("LOG_FORMAT"), app_env),
        log_file=os.getenv("LOG_FILE"),
        sqlalchemy_echo=_to_bool_or_none(os.getenv("SQLALCHEMY_ECHO")),
        local_api_key=os.getenv("LOCAL_API_KEY"),
        auth_require_user=_to_bool(
            os.getenv("AUTH_REQUIRE_USER"),
            default=app_env == "production",
        ),
        db_auto_init=_to_bool(os.getenv("DB_AUTO_INIT"), default=default_db_auto_init),
        db_auto_seed=_to_bool(os.getenv("DB_AUTO_SEED"), default=default_db_auto_seed),
        resolution_cache_enabled=_to_bool(
            os.getenv("RESOLUTION_CACHE_ENABLED"),
            default=True,
        ),
        resolution_cache_ttl_s=_to_int("RESOLUTION_CACHE_TTL_S", default=300),
        resolution_cache_max_entries=_to_int("RESOLUTION_CACHE_MAX_ENTRIES", default=10_000),
        partial_match_min_length=_to_int("PARTIAL_MATCH_MIN_LENGTH", default=8),
        cors_allow_origins=_parse_csv_list(
            os.getenv("CORS_ALLOW_ORIGINS"),
            default=list(DEFAULT_CORS_ORIGINS),
        ),
        cors_allow_credentials=_to_bool(
            os.getenv("CORS_ALLOW_CREDENTIALS"),
            default=True,
        ),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
