"""
Configuration management for the TaskFlow service.

Loads configuration from YAML with ZERO defaults for required sections.
Every required value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

REDACTION_MARKER = "***REDACTED***"

_SENSITIVE_KEY_PARTS: tuple[str, ...] = ("secret", "password", "token", "private_key", "api_key")


class ServiceConfig(BaseModel):
    """Service identity configuration."""

    model_config = ConfigDict(extra="forbid")
    name: str
    version: str


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="forbid")
    host: str
    port: int
    log_level: str


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")
    level: str
    directory: str


class SettlementConfig(BaseModel):
    """Settlement network configuration."""

    model_config = ConfigDict(extra="forbid")
    mode: Literal["http", "simulated"]
    payer_identity: str
    timeout_seconds: int
    base_url: str | None = None
    transfer_path: str | None = None
    balance_path: str | None = None
    api_key: str | None = None
    initial_balances: dict[str, Decimal] | None = None

    @model_validator(mode="after")
    def _check_http_fields(self) -> SettlementConfig:
        if self.mode == "http":
            missing = [
                name
                for name in ("base_url", "transfer_path", "balance_path")
                if getattr(self, name) is None
            ]
            if missing:
                msg = f"settlement.mode 'http' requires: {', '.join(missing)}"
                raise ValueError(msg)
        return self


class MonitorConfig(BaseModel):
    """Supervisory sweep configuration."""

    model_config = ConfigDict(extra="forbid")
    enabled: bool
    interval_seconds: float
    stale_claim_seconds: int
    awaiting_payment_seconds: int

    @field_validator("interval_seconds")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            msg = "interval_seconds must be > 0"
            raise ValueError(msg)
        return value


class EventsConfig(BaseModel):
    """Notification fan-out configuration."""

    model_config = ConfigDict(extra="forbid")
    history_size: int
    stream_queue_size: int


class RequestConfig(BaseModel):
    """Request handling configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int


class Settings(BaseModel):
    """
    Root configuration container.

    All fields are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    settlement: SettlementConfig
    monitor: MonitorConfig
    events: EventsConfig
    request: RequestConfig


def get_config_path() -> Path:
    """Determine configuration file path."""
    configured = os.environ.get("CONFIG_PATH")
    if configured:
        return Path(configured)
    return Path.cwd() / "config.yaml"


def load_settings(path: Path) -> Settings:
    """Load and validate settings from a YAML file."""
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise FileNotFoundError(msg)
    with path.open(encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if not isinstance(raw, dict):
        msg = f"Configuration file must contain a mapping: {path}"
        raise ValueError(msg)
    return Settings.model_validate(raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return load_settings(get_config_path())


def clear_settings_cache() -> None:
    """Forget cached settings. Used in testing."""
    get_settings.cache_clear()


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTION_MARKER
            if any(part in key.lower() for part in _SENSITIVE_KEY_PARTS) and item is not None
            else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def get_safe_config() -> dict[str, Any]:
    """Get configuration with sensitive values redacted."""
    return _redact(get_settings().model_dump(mode="json"))
