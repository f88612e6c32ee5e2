"""Poll a POP3 mailbox, reject unusable replies and escalate connection trouble."""

__version__ = "0.1.0"
