"""Escalation to operators: dashboard problems plus error reports."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from ..core.interfaces import DashboardProblemStore, ErrorReporter, OperatorAlerting

LOGGER = logging.getLogger(__name__)

POLL_TIMEOUT_PROBLEM = "dashboard.poll_pop3_timeout"
POLL_AUTH_ERROR_PROBLEM = "dashboard.poll_pop3_auth_error"

DASHBOARD_MESSAGES: dict[str, str] = {
    POLL_TIMEOUT_PROBLEM: (
        "Connecting via POP3 timed out repeatedly. Check the POP3 host and port "
        "in the mailbox settings."
    ),
    POLL_AUTH_ERROR_PROBLEM: (
        "Signing in to the POP3 mailbox failed. Check the POP3 username and "
        "password in the mailbox settings."
    ),
}


class OperatorAlerts(OperatorAlerting):
    """Route escalations to the dashboard problem store and the error channel."""

    def __init__(self, problems: DashboardProblemStore, reporter: ErrorReporter) -> None:
        self._problems = problems
        self._reporter = reporter

    def report_unexpected_failure(
        self, exc: BaseException, context: Mapping[str, Any]
    ) -> None:
        self._reporter.report(exc, context)

    def raise_dashboard_problem(self, key: str, expiry: timedelta) -> None:
        message = DASHBOARD_MESSAGES.get(key, key)
        LOGGER.warning("Dashboard problem %s raised: %s", key, message)
        self._problems.add_problem(key, message, expiry)


__all__ = [
    "DASHBOARD_MESSAGES",
    "OperatorAlerts",
    "POLL_AUTH_ERROR_PROBLEM",
    "POLL_TIMEOUT_PROBLEM",
]
