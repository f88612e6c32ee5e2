"""Tests for the archiving receiver and header parsing."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from mailbox_poller.core.models import IncomingEmailRecord
from mailbox_poller.ingestion import ArchivingReceiver, parse_headers
from mailbox_poller.ingestion.errors import (
    AutoGeneratedEmailError,
    BouncedEmailError,
    EmptyEmailError,
    NoBodyDetectedError,
)

REPLY = (
    b"Message-ID: <reply@example.com>\r\n"
    b"From: Alice <alice@example.com>\r\n"
    b"To: reply+abc@forum.example.com, Team <team@forum.example.com>\r\n"
    b"Subject: Re: Weekly sync\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"Sounds good, see you then.\r\n"
)


class MemoryRepository:
    """Repository stub assigning sequential ids."""

    def __init__(self) -> None:
        self.records: list[IncomingEmailRecord] = []

    def create(self, record: IncomingEmailRecord) -> IncomingEmailRecord:
        record.id = len(self.records) + 1
        self.records.append(record)
        return record

    def fetch(self, record_id: int) -> IncomingEmailRecord | None:
        return self.records[record_id - 1]

    def set_rejection_message(self, record_id: int, message: str) -> None:
        self.records[record_id - 1].rejection_message = message


def _clock() -> datetime:
    return datetime(2025, 1, 1, tzinfo=UTC)


def test_parse_headers_extracts_addressing() -> None:
    headers = parse_headers(REPLY)

    assert headers.message_id == "<reply@example.com>"
    assert headers.sender == "alice@example.com"
    assert headers.recipients == ("reply+abc@forum.example.com", "team@forum.example.com")
    assert headers.subject == "Re: Weekly sync"


def test_parse_headers_tolerates_missing_headers() -> None:
    headers = parse_headers(b"\r\nbody only\r\n")

    assert headers.sender is None
    assert headers.recipients == ()
    assert headers.subject is None


def test_accepted_reply_is_archived() -> None:
    repository = MemoryRepository()
    receiver = ArchivingReceiver(REPLY, repository, clock=_clock)

    receiver.process()

    assert receiver.incoming_email is not None
    assert receiver.incoming_email.id == 1
    assert receiver.incoming_email.from_address == "alice@example.com"
    assert receiver.incoming_email.created_at == _clock()


def test_blank_message_is_refused_before_archiving() -> None:
    repository = MemoryRepository()
    with pytest.raises(EmptyEmailError):
        ArchivingReceiver(b"  \r\n", repository)
    assert repository.records == []


def test_message_without_text_is_refused_after_archiving() -> None:
    repository = MemoryRepository()
    raw = b"From: alice@example.com\r\nSubject: Hi\r\n\r\n   \r\n"
    receiver = ArchivingReceiver(raw, repository, clock=_clock)

    with pytest.raises(NoBodyDetectedError):
        receiver.process()
    assert receiver.incoming_email is not None


def test_auto_submitted_message_is_refused() -> None:
    repository = MemoryRepository()
    raw = b"From: bot@example.com\r\nAuto-Submitted: auto-replied\r\n\r\nAway\r\n"

    with pytest.raises(AutoGeneratedEmailError):
        ArchivingReceiver(raw, repository, clock=_clock).process()


def test_delivery_status_report_is_a_bounce() -> None:
    repository = MemoryRepository()
    raw = (
        b"From: MAILER-DAEMON@example.com\r\n"
        b"Content-Type: multipart/report; report-type=delivery-status; boundary=XX\r\n"
        b"\r\n"
        b"--XX\r\n"
        b"Content-Type: text/plain\r\n"
        b"\r\n"
        b"Delivery failed.\r\n"
        b"--XX--\r\n"
    )

    with pytest.raises(BouncedEmailError):
        ArchivingReceiver(raw, repository, clock=_clock).process()


def test_encoded_report_type_parameter_is_still_a_bounce() -> None:
    repository = MemoryRepository()
    raw = (
        b"From: MAILER-DAEMON@example.com\r\n"
        b"Content-Type: multipart/report; report-type*=us-ascii''delivery-status;"
        b" boundary=XX\r\n"
        b"\r\n"
        b"--XX\r\n"
        b"Content-Type: text/plain\r\n"
        b"\r\n"
        b"Delivery failed.\r\n"
        b"--XX--\r\n"
    )

    with pytest.raises(BouncedEmailError):
        ArchivingReceiver(raw, repository, clock=_clock).process()
