"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from datetime import timedelta
from types import TracebackType
from typing import Any, Protocol

from .models import (
    DashboardProblem,
    IncomingEmailRecord,
    IncomingMessage,
    PollConfiguration,
    RejectionCategory,
    RejectionMessage,
)


class MailboxSession(Protocol):
    """An authenticated mailbox connection able to drain its messages."""

    def __enter__(self) -> MailboxSession:
        raise NotImplementedError

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        raise NotImplementedError

    def delete_all(self) -> Iterator[IncomingMessage]:
        """Yield each message and delete it once the consumer is done with it."""
        raise NotImplementedError


MailboxFactory = Callable[[PollConfiguration], MailboxSession]


class MessageReceiver(Protocol):
    """Pipeline that turns a raw email into forum content.

    ``process`` signals refusal by raising. ``incoming_email`` is the record
    created for the message, if the pipeline got far enough to create one.
    """

    incoming_email: IncomingEmailRecord | None

    def process(self) -> None:
        raise NotImplementedError


ReceiverFactory = Callable[[bytes], MessageReceiver]


class ErrorRateStore(Protocol):
    """Named counters and event sets shared across processes and restarts."""

    def increment(self, name: str) -> int:
        """Atomically add one to the counter and return the new value."""
        raise NotImplementedError

    def expire(self, name: str, duration: timedelta) -> None:
        """Arm the counter's expiry unless it is already armed."""
        raise NotImplementedError

    def count(self, name: str) -> int:
        raise NotImplementedError

    def reset(self, name: str) -> None:
        raise NotImplementedError

    def add_event(self, name: str) -> None:
        """Record a timestamped event under ``name``."""
        raise NotImplementedError

    def prune_and_count(self, name: str, max_age: timedelta) -> int:
        """Drop events older than ``max_age`` and return how many remain."""
        raise NotImplementedError


class IncomingEmailRepository(Protocol):
    """Persistence for incoming email records."""

    def create(self, record: IncomingEmailRecord) -> IncomingEmailRecord:
        raise NotImplementedError

    def fetch(self, record_id: int) -> IncomingEmailRecord | None:
        raise NotImplementedError

    def set_rejection_message(self, record_id: int, message: str) -> None:
        """Overwrite the rejection explanation stored on a record."""
        raise NotImplementedError


class DashboardProblemStore(Protocol):
    """Keyed, expiring admin dashboard entries."""

    def add_problem(self, key: str, message: str, expiry: timedelta) -> None:
        raise NotImplementedError

    def active_problems(self) -> Sequence[DashboardProblem]:
        raise NotImplementedError


class ErrorReporter(Protocol):
    """Operator error channel."""

    def report(self, exc: BaseException, context: Mapping[str, Any]) -> None:
        raise NotImplementedError


class OperatorAlerting(Protocol):
    """Everything the polling job needs to escalate to an operator."""

    def report_unexpected_failure(
        self, exc: BaseException, context: Mapping[str, Any]
    ) -> None:
        raise NotImplementedError

    def raise_dashboard_problem(self, key: str, expiry: timedelta) -> None:
        raise NotImplementedError


class MailDeliverer(Protocol):
    """Outbound delivery of rendered messages."""

    def deliver(self, message: RejectionMessage, category: RejectionCategory) -> None:
        raise NotImplementedError


__all__ = [
    "DashboardProblemStore",
    "ErrorRateStore",
    "ErrorReporter",
    "IncomingEmailRepository",
    "MailDeliverer",
    "MailboxFactory",
    "MailboxSession",
    "MessageReceiver",
    "OperatorAlerting",
    "ReceiverFactory",
]
