"""Core domain models used across the application."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from .config import AppSettings

POLL_OVERRIDE_ENV_VAR = "POLL_MAILBOX"


class RejectionCategory(str, Enum):
    """Reasons an incoming email can be refused; values name the template."""

    EMPTY = "email_reject_empty"
    NO_BODY = "email_reject_no_body"
    USER_NOT_FOUND = "email_reject_user_not_found"
    SCREENED_EMAIL = "email_reject_screened_email"
    AUTO_GENERATED = "email_reject_auto_generated"
    INACTIVE_USER = "email_reject_inactive_user"
    BLOCKED_USER = "email_reject_blocked_user"
    BAD_DESTINATION_ADDRESS = "email_reject_bad_destination_address"
    STRANGERS_NOT_ALLOWED = "email_reject_strangers_not_allowed"
    INSUFFICIENT_TRUST_LEVEL = "email_reject_insufficient_trust_level"
    REPLY_USER_NOT_MATCHING = "email_reject_reply_user_not_matching"
    TOPIC_NOT_FOUND = "email_reject_topic_not_found"
    TOPIC_CLOSED = "email_reject_topic_closed"
    INVALID_POST = "email_reject_invalid_post"
    INVALID_POST_SPECIFIED = "email_reject_invalid_post_specified"
    INVALID_POST_ACTION = "email_reject_invalid_post_action"
    INVALID_ACCESS = "email_reject_invalid_access"
    RATE_LIMIT_SPECIFIED = "email_reject_rate_limit_specified"


class OutcomeKind(str, Enum):
    """How the pipeline disposed of a single message."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True, slots=True)
class Classification:
    """Rejection category plus the data its template needs."""

    category: RejectionCategory
    extra_args: Mapping[str, Any] = field(default_factory=dict)
    mark_as_reply_to_auto_generated: bool = False


@dataclass(frozen=True, slots=True)
class PollConfiguration:
    """Settings snapshot resolved once at the start of a polling cycle."""

    host: str
    port: int
    use_ssl: bool
    username: str | None
    password: str | None
    polling_enabled: bool
    polling_period: timedelta
    log_failures: bool
    timeout_seconds: float
    site_name: str
    environment: str
    override_present: bool

    @classmethod
    def from_settings(
        cls, settings: AppSettings, environ: Mapping[str, str] | None = None
    ) -> PollConfiguration:
        """Freeze ``settings`` and the diagnostic override into a snapshot."""
        env = os.environ if environ is None else environ
        return cls(
            host=settings.pop3.host,
            port=settings.pop3.port,
            use_ssl=settings.pop3.use_ssl,
            username=settings.pop3.username,
            password=settings.pop3.password,
            polling_enabled=settings.polling.enabled,
            polling_period=timedelta(minutes=settings.polling.period_minutes),
            log_failures=settings.polling.log_failures,
            timeout_seconds=settings.pop3.timeout_seconds,
            site_name=settings.site.title,
            environment=settings.site.environment.lower(),
            override_present=env.get(POLL_OVERRIDE_ENV_VAR) is not None,
        )

    def should_poll(self) -> bool:
        """Return whether this cycle is allowed to touch the mailbox."""
        if self.environment == "development" and not self.override_present:
            return False
        if self.override_present and self.environment != "production":
            return True
        return self.polling_enabled


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    """Raw POP3 payload paired with its message number."""

    number: int
    raw: bytes


@dataclass(frozen=True, slots=True)
class MessageHeaders:
    """Addressing details extracted from a raw message."""

    message_id: str | None
    sender: str | None
    recipients: tuple[str, ...]
    subject: str | None


@dataclass(slots=True)
class IncomingEmailRecord:
    """Persisted incoming email and its rejection explanation."""

    id: int | None
    message_id: str | None
    from_address: str | None
    to_addresses: tuple[str, ...]
    subject: str | None
    raw: bytes
    created_at: datetime
    rejection_message: str | None = None


@dataclass(frozen=True, slots=True)
class RejectionMessage:
    """Rendered rejection notice ready for delivery."""

    to: str
    subject: str
    body: str
    category: RejectionCategory
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DashboardProblem:
    """Operator-visible alert that disappears after ``expires_at``."""

    key: str
    message: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class ProcessingOutcome:
    """Result of handing one message to the receiver pipeline."""

    kind: OutcomeKind
    message_number: int
    category: RejectionCategory | None = None
    failure: BaseException | None = None


@dataclass(slots=True)
class PollReport:
    """Outcome summary for a polling cycle."""

    outcomes: list[ProcessingOutcome] = field(default_factory=list)

    def record(self, outcome: ProcessingOutcome) -> None:
        self.outcomes.append(outcome)

    def _count(self, kind: OutcomeKind) -> int:
        return sum(1 for outcome in self.outcomes if outcome.kind is kind)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def accepted(self) -> int:
        return self._count(OutcomeKind.ACCEPTED)

    @property
    def rejected(self) -> int:
        return self._count(OutcomeKind.REJECTED)

    @property
    def unclassified(self) -> int:
        return self._count(OutcomeKind.UNCLASSIFIED)


__all__ = [
    "POLL_OVERRIDE_ENV_VAR",
    "Classification",
    "DashboardProblem",
    "IncomingEmailRecord",
    "IncomingMessage",
    "MessageHeaders",
    "OutcomeKind",
    "PollConfiguration",
    "PollReport",
    "ProcessingOutcome",
    "RejectionCategory",
    "RejectionMessage",
]
