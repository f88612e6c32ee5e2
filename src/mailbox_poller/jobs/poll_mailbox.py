"""Scheduled job draining the POP3 mailbox into the receiver pipeline."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from datetime import timedelta
from typing import Any

from ..alerts import POLL_AUTH_ERROR_PROBLEM, POLL_TIMEOUT_PROBLEM
from ..core.interfaces import (
    ErrorRateStore,
    MailboxFactory,
    OperatorAlerting,
    ReceiverFactory,
)
from ..core.models import (
    IncomingEmailRecord,
    IncomingMessage,
    OutcomeKind,
    PollConfiguration,
    PollReport,
    ProcessingOutcome,
)
from ..ingestion import classify, match_early_rejection
from ..notify import RejectionDeliveryError, RejectionNotifier
from ..transport import (
    MailboxAuthenticationError,
    MailboxError,
    MailboxTimeoutError,
    Pop3Client,
)

LOGGER = logging.getLogger(__name__)

POLL_MAILBOX_TIMEOUT_ERROR_KEY = "poll_mailbox_timeout_error_key"
POLL_MAILBOX_ERRORS_KEY = "poll_mailbox_errors"

# Timeouts tolerated per window before escalating.
TIMEOUT_THRESHOLD = 3
TIMEOUT_WINDOW_PERIODS = 3
ERRORS_WINDOW = timedelta(hours=24)
PROBLEM_GRACE = timedelta(minutes=5)


class PollInProgressError(RuntimeError):
    """Raised when ``execute`` is called while another cycle is still running."""


class PollMailbox:
    """One polling cycle per ``execute`` call.

    At most one cycle runs at a time per job instance; a concurrent call fails
    fast with :class:`PollInProgressError` instead of waiting. Everything that
    has to outlive a cycle lives in the error-rate store.
    """

    def __init__(
        self,
        *,
        config_provider: Callable[[], PollConfiguration],
        receiver_factory: ReceiverFactory,
        notifier: RejectionNotifier,
        error_store: ErrorRateStore,
        alerts: OperatorAlerting,
        mailbox_factory: MailboxFactory = Pop3Client,
    ) -> None:
        self._config_provider = config_provider
        self._receiver_factory = receiver_factory
        self._notifier = notifier
        self._error_store = error_store
        self._alerts = alerts
        self._mailbox_factory = mailbox_factory
        self._cycle_lock = threading.Lock()

    def execute(self, args: Mapping[str, Any] | None = None) -> PollReport | None:
        """Run a cycle; returns ``None`` when polling is switched off."""
        if not self._cycle_lock.acquire(blocking=False):
            raise PollInProgressError("A polling cycle is already running")
        try:
            job_args = dict(args or {})
            config = self._config_provider()
            if not config.should_poll():
                LOGGER.debug("Mailbox polling is disabled; skipping cycle")
                return None
            return self.poll_pop3(config, job_args)
        finally:
            self._cycle_lock.release()

    def poll_pop3(
        self, config: PollConfiguration, args: Mapping[str, Any]
    ) -> PollReport:
        """Drain the mailbox, containing connection failures within the cycle."""
        report = PollReport()
        LOGGER.info("Polling %s:%s for incoming email", config.host, config.port)
        try:
            with self._mailbox_factory(config) as mailbox:
                for message in mailbox.delete_all():
                    report.record(self.process_message(message, config, args))
        except MailboxTimeoutError as exc:
            self._handle_timeout(exc, config, args)
        except MailboxAuthenticationError as exc:
            self._alerts.raise_dashboard_problem(
                POLL_AUTH_ERROR_PROBLEM, _problem_expiry(config)
            )
            self._alerts.report_unexpected_failure(
                exc, self._error_context(args, "Signing in to poll incoming emails.")
            )
        except MailboxError as exc:
            self._alerts.report_unexpected_failure(
                exc,
                self._error_context(
                    args, f"Reading messages from '{config.host}' over POP3."
                ),
            )

        LOGGER.info(
            "Poll completed: processed=%s, accepted=%s, rejected=%s, unclassified=%s",
            report.processed,
            report.accepted,
            report.rejected,
            report.unclassified,
        )
        return report

    def process_message(
        self,
        message: IncomingMessage,
        config: PollConfiguration,
        args: Mapping[str, Any],
    ) -> ProcessingOutcome:
        """Hand one message to the receiver and deal with any refusal."""
        receiver = None
        try:
            receiver = self._receiver_factory(message.raw)
            receiver.process()
        except Exception as exc:  # pylint: disable=broad-except
            incoming_email = receiver.incoming_email if receiver is not None else None
            early = match_early_rejection(exc)
            if early is not None:
                self._log_failure(config, message.raw, exc)
                self._notifier.record_rejection(incoming_email, early.rejection_message)
                return ProcessingOutcome(
                    OutcomeKind.REJECTED, message.number, failure=exc
                )
            return self.handle_failure(message, exc, incoming_email, config, args)

        LOGGER.debug("Message %s accepted", message.number)
        return ProcessingOutcome(OutcomeKind.ACCEPTED, message.number)

    def handle_failure(
        self,
        message: IncomingMessage,
        exc: BaseException,
        incoming_email: IncomingEmailRecord | None,
        config: PollConfiguration,
        args: Mapping[str, Any],
    ) -> ProcessingOutcome:
        """Notify the sender of a known rejection, or escalate an unknown one."""
        self._log_failure(config, message.raw, exc)

        classification = classify(exc)
        if classification is None:
            self.mark_as_errored()
            self._alerts.report_unexpected_failure(
                exc,
                self._error_context(
                    args,
                    "Unrecognized error type when processing incoming email",
                    mail=message.raw,
                ),
            )
            return ProcessingOutcome(
                OutcomeKind.UNCLASSIFIED, message.number, failure=exc
            )

        try:
            self._notifier.notify(
                classification, message.raw, incoming_email, site_name=config.site_name
            )
        except RejectionDeliveryError as delivery_error:
            self._alerts.report_unexpected_failure(
                delivery_error,
                self._error_context(
                    args,
                    "Sending a rejection notice for an incoming email",
                    category=classification.category.value,
                ),
            )
        return ProcessingOutcome(
            OutcomeKind.REJECTED,
            message.number,
            category=classification.category,
            failure=exc,
        )

    def mark_as_errored(self) -> None:
        """Count an error towards the 24 hour error rate."""
        self._error_store.add_event(POLL_MAILBOX_ERRORS_KEY)

    @staticmethod
    def errors_in_past_24_hours(store: ErrorRateStore) -> int:
        return store.prune_and_count(POLL_MAILBOX_ERRORS_KEY, ERRORS_WINDOW)

    def _handle_timeout(
        self,
        exc: MailboxTimeoutError,
        config: PollConfiguration,
        args: Mapping[str, Any],
    ) -> None:
        count = self._error_store.increment(POLL_MAILBOX_TIMEOUT_ERROR_KEY)
        if count == 1:
            self._error_store.expire(
                POLL_MAILBOX_TIMEOUT_ERROR_KEY,
                config.polling_period * TIMEOUT_WINDOW_PERIODS,
            )

        if count <= TIMEOUT_THRESHOLD:
            LOGGER.debug(
                "Timed out connecting to %s (%s in current window)", config.host, count
            )
            return

        self._error_store.reset(POLL_MAILBOX_TIMEOUT_ERROR_KEY)
        self.mark_as_errored()
        self._alerts.raise_dashboard_problem(
            POLL_TIMEOUT_PROBLEM, _problem_expiry(config)
        )
        self._alerts.report_unexpected_failure(
            exc,
            self._error_context(
                args, f"Connecting to '{config.host}' for polling emails."
            ),
        )

    def _log_failure(
        self, config: PollConfiguration, raw: bytes, exc: BaseException
    ) -> None:
        if config.log_failures:
            LOGGER.warning(
                "Email can not be processed: %s\n\n%s",
                exc,
                raw.decode("utf-8", errors="replace"),
            )

    @staticmethod
    def _error_context(
        args: Mapping[str, Any], message: str, **extra: Any
    ) -> dict[str, Any]:
        return {"job": "PollMailbox", "args": dict(args), "message": message, **extra}


def _problem_expiry(config: PollConfiguration) -> timedelta:
    return config.polling_period + PROBLEM_GRACE


__all__ = [
    "POLL_MAILBOX_ERRORS_KEY",
    "POLL_MAILBOX_TIMEOUT_ERROR_KEY",
    "PollInProgressError",
    "PollMailbox",
]
