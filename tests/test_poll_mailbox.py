"""Tests for the polling job: message dispatch, rejections and escalation."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from mailbox_poller.alerts import POLL_AUTH_ERROR_PROBLEM, POLL_TIMEOUT_PROBLEM
from mailbox_poller.core.config import StorageSettings
from mailbox_poller.core.models import (
    IncomingEmailRecord,
    IncomingMessage,
    OutcomeKind,
    PollConfiguration,
    RejectionCategory,
    RejectionMessage,
)
from mailbox_poller.ingestion import errors
from mailbox_poller.jobs import (
    POLL_MAILBOX_TIMEOUT_ERROR_KEY,
    PollInProgressError,
    PollMailbox,
)
from mailbox_poller.notify import RejectionNotifier
from mailbox_poller.storage import SqliteErrorRateStore
from mailbox_poller.transport import (
    MailboxAuthenticationError,
    MailboxError,
    MailboxTimeoutError,
    SmtpError,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 6, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeMailbox:
    """Mailbox that deletes a message only after the consumer returns."""

    def __init__(self, messages: list[bytes], failure: BaseException | None = None):
        self.messages = messages
        self.failure = failure
        self.deleted: list[int] = []
        self.opened = 0

    def __call__(self, config: PollConfiguration) -> FakeMailbox:
        return self

    def __enter__(self) -> FakeMailbox:
        self.opened += 1
        if self.failure is not None:
            raise self.failure
        return self

    def __exit__(self, *args: object) -> None:
        return None

    def delete_all(self) -> Iterator[IncomingMessage]:
        for number, raw in enumerate(self.messages, 1):
            yield IncomingMessage(number=number, raw=raw)
            self.deleted.append(number)


class MemoryRepository:
    def __init__(self) -> None:
        self.records: dict[int, IncomingEmailRecord] = {}
        self.save_failure: BaseException | None = None

    def create(self, record: IncomingEmailRecord) -> IncomingEmailRecord:
        record.id = len(self.records) + 1
        self.records[record.id] = record
        return record

    def fetch(self, record_id: int) -> IncomingEmailRecord | None:
        return self.records.get(record_id)

    def set_rejection_message(self, record_id: int, message: str) -> None:
        if self.save_failure is not None:
            raise self.save_failure
        self.records[record_id].rejection_message = message


class StubReceiver:
    """Archives the message, then raises whatever was scripted for it."""

    def __init__(
        self,
        raw: bytes,
        repository: MemoryRepository,
        failures: Mapping[bytes, BaseException],
    ) -> None:
        failure = failures.get(raw)
        if isinstance(failure, errors.EmptyEmailError):
            raise failure
        self._raw = raw
        self._repository = repository
        self._failure = failure
        self.incoming_email: IncomingEmailRecord | None = None

    def process(self) -> None:
        self.incoming_email = self._repository.create(
            IncomingEmailRecord(
                id=None,
                message_id=None,
                from_address=None,
                to_addresses=(),
                subject=None,
                raw=self._raw,
                created_at=datetime(2025, 6, 1, tzinfo=UTC),
            )
        )
        if self._failure is not None:
            raise self._failure


class RecordingDeliverer:
    """Refuses blank recipients the way an SMTP server does."""

    def __init__(self, failure: BaseException | None = None) -> None:
        self.sent: list[RejectionMessage] = []
        self.failure = failure

    def deliver(self, message: RejectionMessage, category: RejectionCategory) -> None:
        if self.failure is not None:
            raise self.failure
        if not message.to:
            raise SmtpError("All recipients refused: {}")
        self.sent.append(message)


class RecordingAlerts:
    def __init__(self) -> None:
        self.reports: list[tuple[BaseException, Mapping[str, Any]]] = []
        self.problems: list[tuple[str, timedelta]] = []

    def report_unexpected_failure(
        self, exc: BaseException, context: Mapping[str, Any]
    ) -> None:
        self.reports.append((exc, context))

    def raise_dashboard_problem(self, key: str, expiry: timedelta) -> None:
        self.problems.append((key, expiry))


def _message(number: int, subject: str = "Weekly sync") -> bytes:
    return (
        f"From: sender{number}@example.com\r\n"
        f"To: reply+{number}@forum.example.com\r\n"
        f"Subject: {subject}\r\n"
        "\r\n"
        "Sounds good.\r\n"
    ).encode()


def _config(**overrides: object) -> PollConfiguration:
    values: dict[str, object] = {
        "host": "pop.test",
        "port": 995,
        "use_ssl": True,
        "username": "user",
        "password": "secret",
        "polling_enabled": True,
        "polling_period": timedelta(minutes=5),
        "log_failures": False,
        "timeout_seconds": 5.0,
        "site_name": "Forum",
        "environment": "production",
        "override_present": False,
    }
    values.update(overrides)
    return PollConfiguration(**values)  # type: ignore[arg-type]


class Harness:
    """Job plus every collaborator a test may want to inspect."""

    def __init__(self, tmp_path: Path, **config_overrides: object) -> None:
        self.clock = FakeClock()
        self.config = _config(**config_overrides)
        self.mailbox = FakeMailbox([])
        self.failures: dict[bytes, BaseException] = {}
        self.repository = MemoryRepository()
        self.deliverer = RecordingDeliverer()
        self.alerts = RecordingAlerts()
        self.error_store = SqliteErrorRateStore(
            StorageSettings(db_path=tmp_path / "poller.db"), clock=self.clock
        )
        self.job = PollMailbox(
            config_provider=lambda: self.config,
            receiver_factory=lambda raw: StubReceiver(
                raw, self.repository, self.failures
            ),
            notifier=RejectionNotifier(self.deliverer, self.repository),
            error_store=self.error_store,
            alerts=self.alerts,
            mailbox_factory=lambda config: self.mailbox,
        )

    def errors_in_past_24_hours(self) -> int:
        return PollMailbox.errors_in_past_24_hours(self.error_store)


@pytest.fixture
def harness(tmp_path: Path) -> Iterator[Harness]:
    built = Harness(tmp_path)
    yield built
    built.error_store.close()


def test_disabled_polling_never_opens_the_mailbox(tmp_path: Path) -> None:
    harness = Harness(tmp_path, polling_enabled=False)

    assert harness.job.execute() is None
    assert harness.mailbox.opened == 0
    harness.error_store.close()


def test_accepted_messages_are_all_deleted(harness: Harness) -> None:
    harness.mailbox.messages = [_message(1), _message(2)]

    report = harness.job.execute({})

    assert report is not None
    assert report.accepted == 2
    assert harness.mailbox.deleted == [1, 2]
    assert harness.deliverer.sent == []
    assert harness.alerts.reports == []


def test_one_rejected_message_gets_one_notice_and_explanation(
    harness: Harness,
) -> None:
    harness.mailbox.messages = [_message(1), _message(2, "Launch plan"), _message(3)]
    harness.failures[_message(2, "Launch plan")] = errors.TopicClosedError()

    report = harness.job.execute({})

    assert report is not None
    assert (report.accepted, report.rejected, report.unclassified) == (2, 1, 0)
    assert harness.mailbox.deleted == [1, 2, 3]

    (notice,) = harness.deliverer.sent
    assert notice.to == "sender2@example.com"
    assert notice.category is RejectionCategory.TOPIC_CLOSED
    assert notice.subject == "[Forum] Email issue -- Launch plan"
    assert "reply+2@forum.example.com" in notice.body

    assert harness.repository.records[2].rejection_message == notice.body
    assert harness.repository.records[1].rejection_message is None
    assert harness.repository.records[3].rejection_message is None

    rejected = [o for o in report.outcomes if o.kind is OutcomeKind.REJECTED]
    assert [(o.message_number, o.category) for o in rejected] == [
        (2, RejectionCategory.TOPIC_CLOSED)
    ]


def test_rejection_before_archiving_still_notifies(harness: Harness) -> None:
    harness.mailbox.messages = [_message(1)]
    harness.failures[_message(1)] = errors.EmptyEmailError()

    report = harness.job.execute({})

    assert report is not None
    assert report.rejected == 1
    assert [notice.category for notice in harness.deliverer.sent] == [
        RejectionCategory.EMPTY
    ]
    assert harness.repository.records == {}


def test_unclassified_failure_is_reported_not_answered(harness: Harness) -> None:
    harness.mailbox.messages = [_message(1)]
    failure = ValueError("unexpected")
    harness.failures[_message(1)] = failure

    report = harness.job.execute({"source": "test"})

    assert report is not None
    assert report.unclassified == 1
    assert harness.deliverer.sent == []
    assert harness.mailbox.deleted == [1]
    assert harness.errors_in_past_24_hours() == 1

    ((reported, context),) = harness.alerts.reports
    assert reported is failure
    assert context["message"] == "Unrecognized error type when processing incoming email"
    assert context["mail"] == _message(1)
    assert context["args"] == {"source": "test"}


@pytest.mark.parametrize(
    ("failure", "expected_text"),
    [
        (errors.BouncedEmailError(), "Email is a bounced email report."),
        (
            errors.AutoGeneratedEmailReplyError(),
            "Email is a reply to an auto generated email.",
        ),
    ],
)
def test_early_rejections_are_recorded_silently(
    harness: Harness, failure: BaseException, expected_text: str
) -> None:
    harness.mailbox.messages = [_message(1)]
    harness.failures[_message(1)] = failure

    report = harness.job.execute({})

    assert report is not None
    assert report.rejected == 1
    assert report.outcomes[0].category is None
    assert harness.deliverer.sent == []
    assert harness.alerts.reports == []
    assert harness.errors_in_past_24_hours() == 0
    assert harness.repository.records[1].rejection_message == expected_text
    assert harness.mailbox.deleted == [1]


def test_auto_generated_rejection_is_marked(harness: Harness) -> None:
    harness.mailbox.messages = [_message(1)]
    harness.failures[_message(1)] = errors.AutoGeneratedEmailError()

    harness.job.execute({})

    (notice,) = harness.deliverer.sent
    assert notice.headers["X-Auto-Generated-Reply"] == "marked"


def test_blank_message_does_not_hold_up_the_mailbox(harness: Harness) -> None:
    harness.mailbox.messages = [b"\r\n", _message(2)]
    harness.failures[b"\r\n"] = errors.EmptyEmailError()

    report = harness.job.execute({})

    assert report is not None
    assert (report.accepted, report.rejected) == (1, 1)
    assert harness.mailbox.deleted == [1, 2]
    assert harness.deliverer.sent == []
    assert harness.alerts.reports == []


def test_rejection_without_sender_is_recorded_but_not_sent(harness: Harness) -> None:
    senderless = b"To: reply+1@forum.example.com\r\nSubject: Hi\r\n\r\nBody\r\n"
    harness.mailbox.messages = [senderless, _message(2)]
    harness.failures[senderless] = errors.TopicClosedError()

    report = harness.job.execute({})

    assert report is not None
    assert (report.accepted, report.rejected) == (1, 1)
    assert harness.deliverer.sent == []
    assert harness.repository.records[1].rejection_message is not None
    assert harness.mailbox.deleted == [1, 2]


def test_delivery_failure_is_reported_and_cycle_continues(harness: Harness) -> None:
    harness.mailbox.messages = [_message(1), _message(2)]
    harness.failures[_message(1)] = errors.TopicNotFoundError()
    harness.deliverer.failure = OSError("smtp down")

    report = harness.job.execute({})

    assert report is not None
    assert (report.accepted, report.rejected) == (1, 1)
    assert harness.mailbox.deleted == [1, 2]
    assert harness.repository.records[1].rejection_message is not None

    ((reported, context),) = harness.alerts.reports
    assert isinstance(reported.__cause__, OSError)
    assert context["message"] == "Sending a rejection notice for an incoming email"
    assert context["category"] == RejectionCategory.TOPIC_NOT_FOUND.value


def test_recording_failure_aborts_cycle_and_keeps_message(harness: Harness) -> None:
    harness.mailbox.messages = [_message(1), _message(2)]
    harness.failures[_message(1)] = errors.TopicNotFoundError()
    harness.repository.save_failure = LookupError("record vanished")

    with pytest.raises(LookupError, match="record vanished"):
        harness.job.execute({})

    assert harness.mailbox.deleted == []


def test_overlapping_cycle_is_refused_without_opening_mailbox(
    harness: Harness,
) -> None:
    harness.mailbox.messages = [_message(1)]
    harness.job._cycle_lock.acquire()  # pylint: disable=protected-access
    try:
        with pytest.raises(PollInProgressError):
            harness.job.execute({})
    finally:
        harness.job._cycle_lock.release()  # pylint: disable=protected-access

    assert harness.mailbox.opened == 0
    assert harness.job.execute({}) is not None
    assert harness.mailbox.opened == 1


def test_timeouts_escalate_once_per_window(harness: Harness) -> None:
    harness.mailbox.failure = MailboxTimeoutError("timed out")

    for _ in range(3):
        harness.job.execute({})
        harness.clock.advance(minutes=1)
    assert harness.alerts.problems == []
    assert harness.alerts.reports == []

    harness.job.execute({})

    assert harness.alerts.problems == [(POLL_TIMEOUT_PROBLEM, timedelta(minutes=10))]
    ((_, context),) = harness.alerts.reports
    assert context["message"] == "Connecting to 'pop.test' for polling emails."
    assert harness.errors_in_past_24_hours() == 1
    assert harness.error_store.count(POLL_MAILBOX_TIMEOUT_ERROR_KEY) == 0

    harness.clock.advance(minutes=1)
    harness.job.execute({})
    assert harness.error_store.count(POLL_MAILBOX_TIMEOUT_ERROR_KEY) == 1
    assert len(harness.alerts.reports) == 1


def test_spaced_out_timeouts_never_escalate(harness: Harness) -> None:
    harness.mailbox.failure = MailboxTimeoutError("timed out")

    for _ in range(6):
        harness.job.execute({})
        harness.clock.advance(minutes=16)

    assert harness.alerts.problems == []
    assert harness.alerts.reports == []
    assert harness.errors_in_past_24_hours() == 0


def test_authentication_failure_escalates_every_time(harness: Harness) -> None:
    harness.mailbox.failure = MailboxAuthenticationError("bad password")

    harness.job.execute({})
    harness.job.execute({})

    assert harness.alerts.problems == [
        (POLL_AUTH_ERROR_PROBLEM, timedelta(minutes=10)),
        (POLL_AUTH_ERROR_PROBLEM, timedelta(minutes=10)),
    ]
    assert len(harness.alerts.reports) == 2
    assert harness.error_store.count(POLL_MAILBOX_TIMEOUT_ERROR_KEY) == 0
    assert harness.errors_in_past_24_hours() == 0


def test_other_mailbox_errors_are_only_reported(harness: Harness) -> None:
    harness.mailbox.failure = MailboxError("connection reset")

    report = harness.job.execute({})

    assert report is not None
    assert report.processed == 0
    assert harness.alerts.problems == []
    ((_, context),) = harness.alerts.reports
    assert context["message"] == "Reading messages from 'pop.test' over POP3."


def test_failures_are_logged_when_enabled(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    harness = Harness(tmp_path, log_failures=True)
    harness.mailbox.messages = [_message(1)]
    harness.failures[_message(1)] = errors.TopicClosedError("closed")

    with caplog.at_level(logging.WARNING, logger="mailbox_poller.jobs.poll_mailbox"):
        harness.job.execute({})
    harness.error_store.close()

    assert "Email can not be processed: closed" in caplog.text
    assert "Subject: Weekly sync" in caplog.text
