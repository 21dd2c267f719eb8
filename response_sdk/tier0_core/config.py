"""
response_sdk.tier0_core.config
────────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResponseConfig(BaseSettings):
    """
    Typed configuration for the response layer.
    All env vars are prefixed with RESPONSE_ unless overridden.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ───────────────────────────────────────────────────────────
    app_name: str = Field(default="response-sdk", alias="APP_NAME")
    environment: str = Field(default="development", alias="APP_ENV")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="RESPONSE_LOG_LEVEL")
    log_format: str = Field(default="json", alias="RESPONSE_LOG_FORMAT")
    logger_name: str = Field(default="response_sdk", alias="RESPONSE_LOGGER_NAME")

    # ── Error reporting / metrics ─────────────────────────────────────────────
    error_backend: str = Field(default="none", alias="RESPONSE_ERROR_BACKEND")
    metrics_enabled: bool = Field(default=True, alias="RESPONSE_METRICS_ENABLED")

    # ── Rendering ─────────────────────────────────────────────────────────────
    template_directory: str = Field(default="templates", alias="RESPONSE_TEMPLATE_DIR")
    template_extensions: list[str] = Field(
        default_factory=lambda: [".tmpl", ".html"],
        alias="RESPONSE_TEMPLATE_EXTENSIONS",
    )
    charset: str = Field(default="UTF-8", alias="RESPONSE_CHARSET")
    json_indent: int | None = Field(default=None, alias="RESPONSE_JSON_INDENT")
    xml_root: str = Field(default="response", alias="RESPONSE_XML_ROOT")

    # ── Requests ──────────────────────────────────────────────────────────────
    request_timeout_seconds: float | None = Field(
        default=None, alias="RESPONSE_REQUEST_TIMEOUT"
    )
    max_form_memory_size: int = Field(
        default=32 << 20, alias="RESPONSE_MAX_FORM_MEMORY"
    )

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("error_backend")
    @classmethod
    def validate_error_backend(cls, v: str) -> str:
        allowed = {"none", "sentry", "otel"}
        if v.lower() not in allowed:
            raise ValueError(f"error_backend must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            return None
        return v


@lru_cache(maxsize=1)
def get_config() -> ResponseConfig:
    """
    Return the singleton config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return ResponseConfig()


def _reset_config() -> None:
    """Clear the config cache (tests only)."""
    get_config.cache_clear()


__all__ = ["ResponseConfig", "get_config"]
