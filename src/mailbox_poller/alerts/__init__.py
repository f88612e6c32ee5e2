"""Operator-facing alerting."""

from .operator import (
    DASHBOARD_MESSAGES,
    POLL_AUTH_ERROR_PROBLEM,
    POLL_TIMEOUT_PROBLEM,
    OperatorAlerts,
)
from .reporter import LoggingErrorReporter, WebhookErrorReporter, build_error_reporter

__all__ = [
    "DASHBOARD_MESSAGES",
    "LoggingErrorReporter",
    "OperatorAlerts",
    "POLL_AUTH_ERROR_PROBLEM",
    "POLL_TIMEOUT_PROBLEM",
    "WebhookErrorReporter",
    "build_error_reporter",
]
