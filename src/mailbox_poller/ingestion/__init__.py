"""Ingestion pipeline components."""

from .classifier import EarlyRejection, classify, match_early_rejection
from .parser import parse_headers
from .receiver import ArchivingReceiver, archiving_receiver_factory

__all__ = [
    "ArchivingReceiver",
    "EarlyRejection",
    "archiving_receiver_factory",
    "classify",
    "match_early_rejection",
    "parse_headers",
]
