"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class Pop3Settings(BaseModel):
    """Settings controlling POP3 connectivity."""

    host: str = Field(default="pop.gmail.com", description="POP3 hostname")
    port: int = Field(default=995, description="POP3 port, typically 995 for SSL")
    use_ssl: bool = Field(default=True, description="Connect over implicit TLS")
    username: str | None = Field(default=None, description="Mailbox username")
    password: str | None = Field(default=None, description="Mailbox password")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Socket timeout for the POP3 session"
    )


class PollingSettings(BaseModel):
    """Settings controlling the mailbox polling job."""

    enabled: bool = Field(default=False, description="Administrative enable flag")
    period_minutes: int = Field(
        default=5, ge=1, description="Minutes between two polling cycles"
    )
    log_failures: bool = Field(
        default=False,
        description="Log raw messages that fail processing",
    )


class SmtpSettings(BaseModel):
    """Settings for delivering rejection notices."""

    host: str | None = Field(default=None, description="SMTP hostname")
    port: int = Field(default=587, description="SMTP port")
    username: str | None = Field(default=None, description="SMTP username")
    password: str | None = Field(default=None, description="SMTP password")
    use_tls: bool = Field(
        default=True, description="Use STARTTLS rather than implicit SSL"
    )
    from_address: str | None = Field(
        default=None, description="Envelope sender for outbound notices"
    )
    from_name: str | None = Field(default=None, description="Display name")


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./mailbox_poller.db"), description="SQLite database path"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class SiteSettings(BaseModel):
    """Site-wide values used in notifications and environment checks."""

    title: str = Field(default="Discussion Forum", description="Site display name")
    environment: str = Field(
        default="production",
        description="Deployment environment (production, development, test)",
    )


class AlertSettings(BaseModel):
    """Settings for the operator error channel."""

    webhook_url: str | None = Field(
        default=None, description="Endpoint receiving unexpected failure reports"
    )
    timeout_seconds: float = Field(
        default=10.0, gt=0, description="Request timeout for webhook calls"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    pop3: Pop3Settings = Field(default_factory=Pop3Settings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    site: SiteSettings = Field(default_factory=SiteSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)


ENV_PREFIX = "MAILBOX_POLLER_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _coerce(value: Any) -> Any:
    if isinstance(value, str) and value == "":
        return None
    if isinstance(value, str):
        lowercase_value = value.lower()
        if lowercase_value == "true":
            return True
        if lowercase_value == "false":
            return False
    return value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        _merge_into_tree(collected, path, _coerce(value))

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AlertSettings",
    "AppSettings",
    "LoggingSettings",
    "PollingSettings",
    "Pop3Settings",
    "SiteSettings",
    "SmtpSettings",
    "StorageSettings",
    "load_app_settings",
]
