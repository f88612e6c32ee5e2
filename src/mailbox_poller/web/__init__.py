"""Admin API for the mailbox poller."""

from .app import create_app

__all__ = ["create_app"]
