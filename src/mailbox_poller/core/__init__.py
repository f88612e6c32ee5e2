"""Core utilities for configuration, logging, and domain models."""

from .config import AppSettings, PollingSettings, Pop3Settings, load_app_settings
from .logging import configure_logging
from .models import PollConfiguration, PollReport, RejectionCategory

__all__ = [
    "AppSettings",
    "PollConfiguration",
    "PollReport",
    "PollingSettings",
    "Pop3Settings",
    "RejectionCategory",
    "configure_logging",
    "load_app_settings",
]
