"""Map receiver failures onto rejection categories."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.models import Classification, RejectionCategory
from . import errors

# Longer details are worth showing to the sender.
MIN_POST_ERROR_DETAIL = 6


@dataclass(frozen=True)
class _CategoryRule:
    failure_type: type[BaseException]
    category: RejectionCategory


@dataclass(frozen=True)
class EarlyRejection:
    """Failure handled before generic classification, without notifying anyone."""

    failure_type: type[BaseException]
    rejection_message: str


# Checked in order before the category table; these need the receiver's
# record rather than the failure alone.
EARLY_REJECTIONS: tuple[EarlyRejection, ...] = (
    EarlyRejection(
        errors.BouncedEmailError,
        "Email is a bounced email report.",
    ),
    EarlyRejection(
        errors.AutoGeneratedEmailReplyError,
        "Email is a reply to an auto generated email.",
    ),
)

CATEGORY_RULES: tuple[_CategoryRule, ...] = (
    _CategoryRule(errors.EmptyEmailError, RejectionCategory.EMPTY),
    _CategoryRule(errors.NoBodyDetectedError, RejectionCategory.NO_BODY),
    _CategoryRule(errors.UserNotFoundError, RejectionCategory.USER_NOT_FOUND),
    _CategoryRule(errors.ScreenedEmailError, RejectionCategory.SCREENED_EMAIL),
    _CategoryRule(errors.AutoGeneratedEmailError, RejectionCategory.AUTO_GENERATED),
    _CategoryRule(errors.InactiveUserError, RejectionCategory.INACTIVE_USER),
    _CategoryRule(errors.BlockedUserError, RejectionCategory.BLOCKED_USER),
    _CategoryRule(
        errors.BadDestinationAddress, RejectionCategory.BAD_DESTINATION_ADDRESS
    ),
    _CategoryRule(
        errors.StrangersNotAllowedError, RejectionCategory.STRANGERS_NOT_ALLOWED
    ),
    _CategoryRule(
        errors.InsufficientTrustLevelError, RejectionCategory.INSUFFICIENT_TRUST_LEVEL
    ),
    _CategoryRule(
        errors.ReplyUserNotMatchingError, RejectionCategory.REPLY_USER_NOT_MATCHING
    ),
    _CategoryRule(errors.TopicNotFoundError, RejectionCategory.TOPIC_NOT_FOUND),
    _CategoryRule(errors.TopicClosedError, RejectionCategory.TOPIC_CLOSED),
    _CategoryRule(errors.InvalidPost, RejectionCategory.INVALID_POST),
    _CategoryRule(errors.InvalidPostAction, RejectionCategory.INVALID_POST_ACTION),
    _CategoryRule(errors.InvalidAccess, RejectionCategory.INVALID_ACCESS),
    _CategoryRule(errors.RateLimitExceeded, RejectionCategory.RATE_LIMIT_SPECIFIED),
)


def match_early_rejection(failure: BaseException) -> EarlyRejection | None:
    """Return the first early rule matching ``failure``, if any."""
    for rule in EARLY_REJECTIONS:
        if isinstance(failure, rule.failure_type):
            return rule
    return None


def classify(failure: BaseException) -> Classification | None:
    """Return the rejection for ``failure`` or ``None`` when it is unrecognised."""
    category = next(
        (
            rule.category
            for rule in CATEGORY_RULES
            if isinstance(failure, rule.failure_type)
        ),
        None,
    )
    if category is None:
        return None

    if category is RejectionCategory.INVALID_POST:
        detail = str(failure)
        if len(detail) > MIN_POST_ERROR_DETAIL:
            return Classification(
                RejectionCategory.INVALID_POST_SPECIFIED,
                extra_args={"post_error": detail},
            )
    elif category is RejectionCategory.RATE_LIMIT_SPECIFIED:
        description = getattr(failure, "description", str(failure))
        return Classification(
            category, extra_args={"rate_limit_description": description}
        )
    elif category is RejectionCategory.AUTO_GENERATED:
        return Classification(category, mark_as_reply_to_auto_generated=True)

    return Classification(category)


__all__ = [
    "CATEGORY_RULES",
    "EARLY_REJECTIONS",
    "EarlyRejection",
    "MIN_POST_ERROR_DETAIL",
    "classify",
    "match_early_rejection",
]
