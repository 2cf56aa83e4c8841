"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    cors_allow_origin: str = Field(
        "*",
        description="Value of Access-Control-Allow-Origin on every response",
    )
    cors_allow_headers: str = Field(
        "authorization, x-client-info, apikey, content-type",
        description="Value of Access-Control-Allow-Headers on every response",
    )
    trust_forwarded_headers: bool = Field(
        True,
        description="Derive the client identity from X-Forwarded-For / CF-Connecting-IP",
    )
    distinguish_non_admin_login: bool = Field(
        False,
        description=(
            "Return 403 'Access denied' for known users without the admin role "
            "instead of the generic 401 (leaks which usernames exist)"
        ),
    )
    setup_key: str | None = Field(
        None,
        description="Shared secret enabling POST /setup-admin (disabled when unset)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-endpoint throttling policies."""

    enabled: bool = Field(True, description="Enable rate limiting on all endpoints")
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers alongside Retry-After when throttling",
    )

    login_max_attempts: int = Field(
        5,
        description="Failed admin logins tolerated before the client is blocked",
        ge=1,
    )
    login_attempt_window_seconds: int = Field(
        300,
        description="Rolling window in which failed logins are counted",
        ge=1,
    )
    login_block_seconds: int = Field(
        900,
        description="Block duration once the failure threshold is reached",
        ge=1,
    )
    login_max_entries: int = Field(
        500,
        description="Attempt table size that triggers a sweep of stale entries",
        ge=1,
    )

    signed_url_requests: int = Field(
        30,
        description="Signed URL requests allowed per window (per client)",
        ge=1,
    )
    signed_url_window_seconds: int = Field(
        60,
        description="Signed URL rate limit window in seconds",
        ge=1,
    )

    increment_requests: int = Field(
        10,
        description="Download increments allowed per window (per client and document)",
        ge=1,
    )
    increment_window_seconds: int = Field(
        60,
        description="Download increment rate limit window in seconds",
        ge=1,
    )

    max_entries: int = Field(
        1000,
        description="Window table size that triggers a sweep of stale entries",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Backend selection and document access policy."""

    backend: str = Field(
        "memory",
        description="Store backend: 'memory' (local/dev) or 'supabase'",
    )
    documents_bucket: str = Field(
        "documents",
        description="Blob storage bucket holding document files",
    )
    signed_url_ttl_seconds: int = Field(
        300,
        description="Lifetime of issued signed URLs in seconds",
        ge=1,
    )
    request_timeout_seconds: float = Field(
        10.0,
        description="Timeout applied to every call to the external store",
    )
    signing_secret: str | None = Field(
        None,
        description="HMAC secret for the in-memory blob store (random per process when unset)",
    )
    public_base_url: str = Field(
        "http://localhost:8000",
        description="Base URL used when the in-memory blob store builds signed URLs",
    )
    seed_file: str | None = Field(
        None,
        description=(
            "JSON file with 'accounts' and 'documents' loaded into the in-memory "
            "backend at startup (the memory backend is empty without it)"
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class SupabaseSettings(BaseSettings):
    """Credentials for the hosted Supabase project."""

    url: str | None = Field(None, description="Project URL, e.g. https://xyz.supabase.co")
    service_role_key: str | None = Field(
        None,
        description="Service role key used for profile/role/document lookups",
    )
    anon_key: str | None = Field(
        None,
        description="Anonymous key used for the password sign-in",
    )

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        case_sensitive=False,
    )


def _build_log_settings() -> LogSettings:
    return LogSettings()


def _build_app_settings() -> AppSettings:
    return AppSettings()


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()


def _build_store_settings() -> StoreSettings:
    return StoreSettings()


def _build_supabase_settings() -> SupabaseSettings:
    return SupabaseSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    supabase: SupabaseSettings = Field(default_factory=_build_supabase_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
