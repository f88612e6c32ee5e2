"""Tell senders why their email was refused and remember the explanation."""

from __future__ import annotations

import logging

from ..core.interfaces import IncomingEmailRepository, MailDeliverer
from ..core.models import Classification, IncomingEmailRecord, RejectionMessage
from ..ingestion.parser import parse_headers
from .mailer import RejectionMailer

LOGGER = logging.getLogger(__name__)


class RejectionDeliveryError(RuntimeError):
    """Raised when a rendered notice could not be handed to the deliverer."""

    def __init__(self, message: RejectionMessage, cause: BaseException) -> None:
        super().__init__(f"Failed to deliver rejection notice to {message.to}: {cause}")
        self.rejection = message


class RejectionNotifier:
    """Render, deliver and record one rejection notice per refused message."""

    def __init__(
        self,
        deliverer: MailDeliverer,
        repository: IncomingEmailRepository,
        *,
        mailer: RejectionMailer | None = None,
    ) -> None:
        self._deliverer = deliverer
        self._repository = repository
        self._mailer = mailer or RejectionMailer()

    def notify(
        self,
        classification: Classification,
        raw_message: bytes,
        destination_record: IncomingEmailRecord | None,
        *,
        site_name: str,
    ) -> RejectionMessage:
        """Send the notice for ``classification`` back to the original sender.

        The rendered body is stored as the record's rejection message even when
        there is nobody to send it to. Storage errors propagate unchanged;
        delivery errors are raised as :class:`RejectionDeliveryError` after the
        body has been stored.
        """
        headers = parse_headers(raw_message)
        template_args = {
            **classification.extra_args,
            "former_title": headers.subject or "",
            "destination": ", ".join(headers.recipients),
            "site_name": site_name,
        }
        message = self._mailer.send_rejection(
            classification.category,
            headers.sender or "",
            template_args,
            mark_as_reply_to_auto_generated=(
                classification.mark_as_reply_to_auto_generated
            ),
        )

        if not message.to:
            LOGGER.info(
                "Not sending %s rejection: message has no sender address",
                classification.category.value,
            )
            self.record_rejection(destination_record, message.body)
            return message

        try:
            self._deliverer.deliver(message, classification.category)
        except Exception as exc:  # pylint: disable=broad-except
            self.record_rejection(destination_record, message.body)
            raise RejectionDeliveryError(message, exc) from exc
        LOGGER.info(
            "Sent %s rejection to %s", classification.category.value, message.to
        )

        self.record_rejection(destination_record, message.body)
        return message

    def record_rejection(
        self, destination_record: IncomingEmailRecord | None, text: str
    ) -> None:
        """Store ``text`` as the record's rejection message, if there is a record."""
        if destination_record is None or destination_record.id is None:
            return
        self._repository.set_rejection_message(destination_record.id, text)
        destination_record.rejection_message = text


__all__ = ["RejectionDeliveryError", "RejectionNotifier"]
