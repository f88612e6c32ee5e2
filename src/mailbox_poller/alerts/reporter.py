"""Operator error channel implementations."""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..core.config import AlertSettings
from ..core.datetime_utils import serialize_datetime, utc_now
from ..core.interfaces import ErrorReporter

LOGGER = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class LoggingErrorReporter(ErrorReporter):
    """Write unexpected failures to the application log with their traceback."""

    def report(self, exc: BaseException, context: Mapping[str, Any]) -> None:
        summary = {key: value for key, value in context.items() if key != "mail"}
        LOGGER.error(
            "%s: %s (context: %s)",
            context.get("message", "Unexpected failure"),
            exc,
            summary,
            exc_info=(type(exc), exc, exc.__traceback__),
        )


@dataclass(slots=True)
class WebhookErrorReporter(ErrorReporter):
    """Log the failure, then post it as JSON to the configured webhook.

    Delivery is best effort: after the retries are used up the report is
    dropped with a warning so that alerting never breaks the polling job.
    """

    settings: AlertSettings
    fallback: ErrorReporter = field(default_factory=LoggingErrorReporter)
    sleep: Callable[[float], None] = time.sleep

    def report(self, exc: BaseException, context: Mapping[str, Any]) -> None:
        self.fallback.report(exc, context)
        if not self.settings.webhook_url:
            return

        payload = _build_payload(exc, context)
        last_error: httpx.HTTPError | None = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = httpx.post(
                    self.settings.webhook_url,
                    json=payload,
                    timeout=self.settings.timeout_seconds,
                )
                response.raise_for_status()
                return
            except httpx.HTTPError as exc_http:
                last_error = exc_http

            if attempt < MAX_ATTEMPTS:
                self.sleep(min(2**attempt, 8))

        LOGGER.warning(
            "Dropping error report after %s attempts: %s", MAX_ATTEMPTS, last_error
        )


def _build_payload(exc: BaseException, context: Mapping[str, Any]) -> dict[str, Any]:
    serialized_context: dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, bytes):
            serialized_context[key] = value.decode("utf-8", errors="replace")
        elif isinstance(value, (str, int, float, bool, list, dict)) or value is None:
            serialized_context[key] = value
        else:
            serialized_context[key] = repr(value)
    return {
        "error_class": type(exc).__name__,
        "error_message": str(exc),
        "backtrace": traceback.format_exception(exc),
        "context": serialized_context,
        "reported_at": serialize_datetime(utc_now()),
    }


def build_error_reporter(settings: AlertSettings) -> ErrorReporter:
    """Return the webhook reporter when a URL is configured, else log only."""
    if settings.webhook_url:
        return WebhookErrorReporter(settings)
    return LoggingErrorReporter()


__all__ = [
    "LoggingErrorReporter",
    "WebhookErrorReporter",
    "build_error_reporter",
]
