"""Default receiver that archives incoming emails without creating posts."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from email.message import EmailMessage
from email.utils import collapse_rfc2231_value

from ..core.datetime_utils import utc_now
from ..core.interfaces import IncomingEmailRepository, MessageReceiver, ReceiverFactory
from ..core.models import IncomingEmailRecord
from .errors import (
    AutoGeneratedEmailError,
    BouncedEmailError,
    EmptyEmailError,
    NoBodyDetectedError,
)
from .parser import extract_text_body, headers_of, parse_message

LOGGER = logging.getLogger(__name__)


class ArchivingReceiver(MessageReceiver):
    """Store each message as an incoming email and refuse obviously unusable ones.

    Bounces, automated mail and messages without any text are refused; anything
    else is accepted as-is.
    """

    def __init__(
        self,
        raw: bytes,
        repository: IncomingEmailRepository,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not raw.strip():
            raise EmptyEmailError("Email is empty")
        self._raw = raw
        self._repository = repository
        self._clock = clock
        self.incoming_email: IncomingEmailRecord | None = None

    def process(self) -> None:
        message = parse_message(self._raw)
        headers = headers_of(message)
        self.incoming_email = self._repository.create(
            IncomingEmailRecord(
                id=None,
                message_id=headers.message_id,
                from_address=headers.sender,
                to_addresses=headers.recipients,
                subject=headers.subject,
                raw=self._raw,
                created_at=self._clock(),
            )
        )
        LOGGER.debug("Stored incoming email %s", self.incoming_email.id)

        if _is_bounce(message):
            raise BouncedEmailError("Message is a delivery status notification")
        auto_submitted = str(message.get("Auto-Submitted", "no")).strip().lower()
        if auto_submitted != "no":
            raise AutoGeneratedEmailError(f"Auto-Submitted: {auto_submitted}")
        if extract_text_body(message) is None:
            raise NoBodyDetectedError("No body text detected")


def _is_bounce(message: EmailMessage) -> bool:
    if message.get_content_type() != "multipart/report":
        return False
    report_type = collapse_rfc2231_value(message.get_param("report-type", ""))
    return report_type.lower() == "delivery-status"


def archiving_receiver_factory(
    repository: IncomingEmailRepository,
) -> ReceiverFactory:
    """Return a factory building :class:`ArchivingReceiver` instances."""

    def factory(raw: bytes) -> MessageReceiver:
        return ArchivingReceiver(raw, repository)

    return factory


__all__ = ["ArchivingReceiver", "archiving_receiver_factory"]
