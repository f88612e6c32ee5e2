"""Failures a receiver pipeline raises when it refuses an email."""

from __future__ import annotations


class ProcessingError(RuntimeError):
    """Base class for every refusal raised while processing an email."""


class EmptyEmailError(ProcessingError):
    """The raw message was blank."""


class NoBodyDetectedError(ProcessingError):
    """No reply text could be found in the message."""


class UserNotFoundError(ProcessingError):
    """The sender does not match a known user."""


class ScreenedEmailError(ProcessingError):
    """The sender address is on the screened list."""


class AutoGeneratedEmailError(ProcessingError):
    """The message was produced by an automated system."""


class AutoGeneratedEmailReplyError(ProcessingError):
    """The message replies to one of our own auto-generated notices."""


class BouncedEmailError(ProcessingError):
    """The message is a delivery status notification."""


class InactiveUserError(ProcessingError):
    """The sender's account has not been activated."""


class BlockedUserError(ProcessingError):
    """The sender's account is blocked."""


class BadDestinationAddress(ProcessingError):
    """No recipient address maps to a reply target."""


class StrangersNotAllowedError(ProcessingError):
    """Only known users may start conversations by email."""


class InsufficientTrustLevelError(ProcessingError):
    """The sender's trust level does not allow posting by email."""


class ReplyUserNotMatchingError(ProcessingError):
    """The reply came from a different user than the one notified."""


class TopicNotFoundError(ProcessingError):
    """The topic being replied to no longer exists."""


class TopicClosedError(ProcessingError):
    """The topic being replied to is closed."""


class InvalidPost(ProcessingError):
    """The post built from the message failed validation."""


class PostRollback(InvalidPost):
    """The transaction creating the post was rolled back."""


class InvalidPostAction(ProcessingError):
    """The requested post action (like, flag, ...) is not allowed."""


class InvalidAccess(ProcessingError):
    """The sender lacks permission for the target."""


class RateLimitExceeded(ProcessingError):
    """The sender hit a rate limit."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


__all__ = [
    "AutoGeneratedEmailError",
    "AutoGeneratedEmailReplyError",
    "BadDestinationAddress",
    "BlockedUserError",
    "BouncedEmailError",
    "EmptyEmailError",
    "InactiveUserError",
    "InsufficientTrustLevelError",
    "InvalidAccess",
    "InvalidPost",
    "InvalidPostAction",
    "NoBodyDetectedError",
    "PostRollback",
    "ProcessingError",
    "RateLimitExceeded",
    "ReplyUserNotMatchingError",
    "ScreenedEmailError",
    "StrangersNotAllowedError",
    "TopicClosedError",
    "TopicNotFoundError",
    "UserNotFoundError",
]
