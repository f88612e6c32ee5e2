"""Scheduled jobs."""

from .poll_mailbox import (
    POLL_MAILBOX_ERRORS_KEY,
    POLL_MAILBOX_TIMEOUT_ERROR_KEY,
    PollInProgressError,
    PollMailbox,
)
from .scheduler import Scheduler
from .wiring import PollerServices, build_services

__all__ = [
    "POLL_MAILBOX_ERRORS_KEY",
    "POLL_MAILBOX_TIMEOUT_ERROR_KEY",
    "PollInProgressError",
    "PollMailbox",
    "PollerServices",
    "Scheduler",
    "build_services",
]
