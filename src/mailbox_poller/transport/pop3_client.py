"""POP3 transport adapter providing mailbox access."""

from __future__ import annotations

import logging
import poplib
from collections.abc import Iterator
from types import TracebackType

from ..core.interfaces import MailboxSession
from ..core.models import IncomingMessage, PollConfiguration

LOGGER = logging.getLogger(__name__)


class MailboxError(RuntimeError):
    """Wrap low level POP3 errors with additional context."""


class MailboxTimeoutError(MailboxError):
    """Raised when the POP3 server cannot be reached in time."""


class MailboxAuthenticationError(MailboxError):
    """Raised when the POP3 server refuses the configured credentials."""


class Pop3Client(MailboxSession):
    """Thin wrapper around ``poplib`` draining a mailbox one message at a time."""

    def __init__(self, config: PollConfiguration) -> None:
        """Initialise the client from a polling configuration snapshot."""
        self._config = config
        self._connection: poplib.POP3 | poplib.POP3_SSL | None = None

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> Pop3Client:
        """Connect and authenticate on entering a context manager scope."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Commit deletions and release the socket on context exit."""
        self.close()

    # Public API ---------------------------------------------------------------
    def connect(self) -> None:
        """Open the POP3 session and sign in."""
        if self._connection is not None:
            return

        host = self._config.host
        port = self._config.port
        timeout = self._config.timeout_seconds
        try:
            if self._config.use_ssl:
                LOGGER.debug("Connecting to POP3 host %s:%s via SSL", host, port)
                connection: poplib.POP3 | poplib.POP3_SSL = poplib.POP3_SSL(
                    host, port, timeout=timeout
                )
            else:
                LOGGER.debug("Connecting to POP3 host %s:%s without SSL", host, port)
                connection = poplib.POP3(host, port, timeout=timeout)
        except TimeoutError as exc:
            raise MailboxTimeoutError(
                f"Timed out connecting to POP3 host {host}:{port}"
            ) from exc
        except (OSError, poplib.error_proto) as exc:
            raise MailboxError(f"Failed to connect to POP3 host {host}:{port}") from exc

        try:
            self._authenticate(connection)
        except BaseException:
            _close_quietly(connection)
            raise
        self._connection = connection

    def delete_all(self) -> Iterator[IncomingMessage]:
        """Yield every message in mailbox order, deleting each after it is handled.

        Deletions are only committed by the server when the session is closed.
        """
        connection = self._require_connection()
        try:
            _, listings, _ = connection.list()
        except (OSError, poplib.error_proto) as exc:
            raise MailboxError("Failed to list POP3 messages") from exc

        numbers = [int(entry.split()[0]) for entry in listings if entry.strip()]
        LOGGER.debug("Mailbox holds %s message(s)", len(numbers))
        for number in numbers:
            raw = self._retrieve(connection, number)
            yield IncomingMessage(number=number, raw=raw)
            LOGGER.debug("Marking message %s for deletion", number)
            try:
                connection.dele(number)
            except (OSError, poplib.error_proto) as exc:
                raise MailboxError(f"Failed to delete POP3 message {number}") from exc

    def close(self) -> None:
        """Send QUIT so the server commits deletions, then drop the socket."""
        if self._connection is None:
            return
        try:
            LOGGER.debug("Closing POP3 session")
            self._connection.quit()
        except (OSError, poplib.error_proto):  # pragma: no cover - server state
            LOGGER.debug("POP3 quit raised; closing socket")
            self._connection.close()
        finally:
            self._connection = None

    # Internal helpers ---------------------------------------------------------
    def _authenticate(self, connection: poplib.POP3 | poplib.POP3_SSL) -> None:
        username = self._config.username
        password = self._config.password
        if username is None or password is None:
            raise MailboxAuthenticationError("POP3 credentials are not configured")

        LOGGER.debug("Authenticating as %s", username)
        try:
            connection.user(username)
            connection.pass_(password)
        except poplib.error_proto as exc:
            raise MailboxAuthenticationError(
                f"POP3 server rejected credentials for {username}"
            ) from exc
        except TimeoutError as exc:
            raise MailboxTimeoutError("Timed out while signing in to POP3") from exc
        except OSError as exc:
            raise MailboxError("Connection lost while signing in to POP3") from exc

    def _retrieve(self, connection: poplib.POP3 | poplib.POP3_SSL, number: int) -> bytes:
        LOGGER.debug("Retrieving message %s", number)
        try:
            _, lines, _ = connection.retr(number)
        except (OSError, poplib.error_proto) as exc:
            raise MailboxError(f"Failed to retrieve POP3 message {number}") from exc
        return b"\r\n".join(lines) + b"\r\n"

    def _require_connection(self) -> poplib.POP3 | poplib.POP3_SSL:
        if self._connection is None:
            raise MailboxError("POP3 session has not been established")
        return self._connection


def _close_quietly(connection: poplib.POP3 | poplib.POP3_SSL) -> None:
    try:
        connection.close()
    except OSError:  # pragma: no cover
        LOGGER.debug("Socket close raised after failed sign-in")


__all__ = [
    "MailboxAuthenticationError",
    "MailboxError",
    "MailboxTimeoutError",
    "Pop3Client",
]
