"""Utilities for reading addressing details out of raw RFC822 messages."""

from __future__ import annotations

from collections.abc import Iterable
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses

from ..core.models import MessageHeaders

_PARSER = BytesParser(policy=policy.default)


def parse_message(payload: bytes) -> EmailMessage:
    """Parse raw bytes into an :class:`EmailMessage`."""
    return _PARSER.parsebytes(payload)  # type: ignore[return-value]


def parse_headers(payload: bytes) -> MessageHeaders:
    """Extract sender, recipients and subject; missing values become ``None``."""
    message = parse_message(payload)
    return headers_of(message)


def headers_of(message: EmailMessage) -> MessageHeaders:
    return MessageHeaders(
        message_id=_header_text(message, "Message-ID"),
        sender=_take_first_address(_header_text(message, "From")),
        recipients=tuple(_extract_addresses(_all_header_texts(message, "To"))),
        subject=_header_text(message, "Subject"),
    )


def extract_text_body(message: EmailMessage) -> str | None:
    """Return the stripped plain-text body, falling back to HTML parts."""
    plain_chunks: list[str] = []
    html_chunks: list[str] = []

    for part in message.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue
        try:
            content_obj = part.get_content()
        except LookupError:
            continue
        if not isinstance(content_obj, str):
            continue
        content = content_obj.strip()
        if not content:
            continue
        if part.get_content_type() == "text/plain":
            plain_chunks.append(content)
        elif part.get_content_type() == "text/html":
            html_chunks.append(content)

    chunks = plain_chunks or html_chunks
    return "\n\n".join(chunks) if chunks else None


def _header_text(message: EmailMessage, name: str) -> str | None:
    # Malformed headers can raise while being decoded.
    try:
        value = message.get(name)
    except (TypeError, ValueError, IndexError):
        return None
    return str(value) if value is not None else None


def _all_header_texts(message: EmailMessage, name: str) -> list[str]:
    try:
        return [str(value) for value in message.get_all(name, [])]
    except (TypeError, ValueError, IndexError):
        return []


def _extract_addresses(headers: Iterable[str]) -> Iterable[str]:
    for _, email_address in getaddresses(list(headers)):
        if email_address:
            yield email_address


def _take_first_address(header_value: str | None) -> str | None:
    if header_value is None:
        return None
    addresses = list(_extract_addresses([header_value]))
    return addresses[0] if addresses else None


__all__ = ["extract_text_body", "headers_of", "parse_headers", "parse_message"]
