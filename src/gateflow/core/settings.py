"""Deployment settings for gateflow.

One deployment runs one workflow variant. Everything that differs between
deployments (which variant, upstream URL override, timeout, which record
store) is read from ``GATEFLOW_*`` environment variables or a ``.env`` file.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not mid-request
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** ``memory`` store and the ``weather`` variant work
      out of the box for development

Examples:
    >>> from gateflow.core.settings import GateflowSettings
    >>> settings = GateflowSettings(workflow="ip", store_backend="memory")
    >>> settings.workflow
    'ip'

Tags:
    settings, configuration, pydantic, environment, gateflow

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

StoreBackend = Literal["memory", "sql", "dynamodb"]


class GateflowSettings(BaseSettings):
    """Settings for one gateflow deployment.

    Order of precedence (highest → lowest):
        1. Environment variables (``GATEFLOW_WORKFLOW``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, description="Bind port")
    debug: bool = Field(default=False, description="Expose internal error details")

    # ── Observability ────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool | None = Field(default=None, description="JSON logs (None = auto-detect tty)")

    # ── Workflow ─────────────────────────────────────────────────────────
    workflow: str = Field(default="weather", description="Workflow variant served on '/'")
    upstream_url: str | None = Field(default=None, description="Override the variant's upstream URL")
    timeout_seconds: float | None = Field(default=None, description="Override the run-level timeout")
    fetch_timeout_seconds: float | None = Field(default=None, description="Override the fetch step budget")

    # ── Record store ─────────────────────────────────────────────────────
    store_backend: StoreBackend = Field(default="memory", description="Record store backend")
    database_url: str = Field(default="sqlite:///gateflow.db", description="SQLAlchemy URL (sql backend)")
    table_name: str = Field(default="gateflow_records", description="Table name (sql / dynamodb)")
    aws_region: str = Field(default="us-east-1", description="AWS region (dynamodb backend)")
    dynamodb_endpoint_url: str | None = Field(default=None, description="Custom DynamoDB endpoint")

    @field_validator("timeout_seconds", "fetch_timeout_seconds")
    @classmethod
    def _positive(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("timeouts must be positive")
        return value


@lru_cache(maxsize=1)
def get_settings() -> GateflowSettings:
    """Cached settings — loaded once per process."""
    return GateflowSettings()
