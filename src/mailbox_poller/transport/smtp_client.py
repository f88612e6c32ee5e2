"""SMTP client for delivering rejection notices."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import TYPE_CHECKING

from ..core.interfaces import MailDeliverer
from ..core.models import RejectionCategory, RejectionMessage

if TYPE_CHECKING:
    from ..core.config import SmtpSettings

LOGGER = logging.getLogger(__name__)


class SmtpError(RuntimeError):
    """Raised when SMTP connection, authentication, or sending fails."""


class SmtpClient:
    """SMTP client for sending rendered messages.

    Provides a context manager interface for automatic connection management.
    Supports both STARTTLS and implicit SSL connections.

    Example:
        >>> with SmtpClient(settings) as client:
        ...     client.send(message)
    """

    def __init__(self, settings: SmtpSettings, *, timeout: float = 30.0) -> None:
        self._settings = settings
        self._timeout = timeout
        self._connection: smtplib.SMTP | None = None

    def __enter__(self) -> SmtpClient:
        """Enter context manager, establishing connection."""
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        """Exit context manager, closing connection."""
        self.disconnect()

    def connect(self) -> None:
        """Establish SMTP connection and authenticate.

        Raises:
            SmtpError: If connection or authentication fails
        """
        if not self._settings.host:
            raise SmtpError("SMTP host not configured")

        LOGGER.debug(
            "Attempting SMTP connection to %s:%d",
            self._settings.host,
            self._settings.port,
        )

        try:
            if self._settings.use_tls:
                self._connection = smtplib.SMTP(
                    self._settings.host,
                    self._settings.port,
                    timeout=self._timeout,
                )
                self._connection.starttls()
            else:
                self._connection = smtplib.SMTP_SSL(
                    self._settings.host,
                    self._settings.port,
                    timeout=self._timeout,
                )

            if self._settings.username and self._settings.password:
                LOGGER.debug("Authenticating as %s", self._settings.username)
                self._connection.login(
                    self._settings.username,
                    self._settings.password,
                )
        except smtplib.SMTPAuthenticationError as exc:
            self._abort()
            raise SmtpError(f"SMTP authentication failed: {exc}") from exc
        except smtplib.SMTPException as exc:
            self._abort()
            raise SmtpError(f"SMTP error: {exc}") from exc
        except OSError as exc:
            self._abort()
            raise SmtpError(f"Network error: {exc}") from exc

    def _abort(self) -> None:
        """Drop a half-open connection without the QUIT handshake."""
        if self._connection is None:
            return
        try:
            self._connection.close()
        except OSError as exc:
            LOGGER.debug("Error closing SMTP socket: %s", exc)
        finally:
            self._connection = None

    def disconnect(self) -> None:
        """Close SMTP connection gracefully."""
        if self._connection:
            try:
                self._connection.quit()
            except smtplib.SMTPException as exc:
                LOGGER.warning("Error closing SMTP connection: %s", exc)
            finally:
                self._connection = None

    def send(self, message: RejectionMessage) -> None:
        """Send a rendered message.

        Raises:
            SmtpError: If sending fails or not connected
        """
        if not self._connection:
            raise SmtpError("Not connected to SMTP server")

        mime_message = self.build_mime_message(message)
        try:
            refused = self._connection.send_message(mime_message)
        except smtplib.SMTPRecipientsRefused as exc:
            raise SmtpError(f"All recipients refused: {exc}") from exc
        except smtplib.SMTPException as exc:
            raise SmtpError(f"Failed to send email: {exc}") from exc

        if refused:
            raise SmtpError(f"Some recipients were refused: {refused}")
        LOGGER.info("Email sent to %s: %s", message.to, message.subject)

    def build_mime_message(self, message: RejectionMessage) -> EmailMessage:
        """Build the MIME representation of ``message``."""
        mime_msg = EmailMessage()
        from_address = self._settings.from_address or self._settings.username or ""
        if self._settings.from_name:
            from_address = formataddr((self._settings.from_name, from_address))

        mime_msg["From"] = from_address
        mime_msg["To"] = message.to
        mime_msg["Subject"] = message.subject
        mime_msg["Message-ID"] = make_msgid()
        for name, value in message.headers.items():
            mime_msg[name] = value
        mime_msg.set_content(message.body)
        return mime_msg


class SmtpDeliverer(MailDeliverer):
    """Deliver each message over its own short-lived SMTP session."""

    def __init__(self, settings: SmtpSettings) -> None:
        self._settings = settings

    def deliver(self, message: RejectionMessage, category: RejectionCategory) -> None:
        LOGGER.debug("Delivering %s notice to %s", category.value, message.to)
        with SmtpClient(self._settings) as client:
            client.send(message)


__all__ = ["SmtpClient", "SmtpDeliverer", "SmtpError"]
