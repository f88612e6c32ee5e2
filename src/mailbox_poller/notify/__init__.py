"""Rejection notices sent back to the authors of refused emails."""

from .mailer import RejectionMailer
from .rejection import RejectionDeliveryError, RejectionNotifier
from .templates import REJECTION_TEMPLATES

__all__ = [
    "REJECTION_TEMPLATES",
    "RejectionDeliveryError",
    "RejectionMailer",
    "RejectionNotifier",
]
