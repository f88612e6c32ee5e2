"""Transport adapters for mailbox access and outbound delivery."""

from .pop3_client import (
    MailboxAuthenticationError,
    MailboxError,
    MailboxTimeoutError,
    Pop3Client,
)
from .smtp_client import SmtpClient, SmtpDeliverer, SmtpError

__all__ = [
    "MailboxAuthenticationError",
    "MailboxError",
    "MailboxTimeoutError",
    "Pop3Client",
    "SmtpClient",
    "SmtpDeliverer",
    "SmtpError",
]
