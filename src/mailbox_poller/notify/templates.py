"""Text templates for rejection notices, keyed by category."""

from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent

from ..core.models import RejectionCategory

SUBJECT_TEMPLATE = "[{site_name}] Email issue -- {former_title}"

_INTRO = (
    "We're sorry, but your email message to [{destination}] "
    "(titled {former_title}) didn't work."
)


@dataclass(frozen=True)
class RejectionTemplate:
    """Subject and body with ``str.format`` placeholders."""

    subject: str
    body: str


def _body(reason: str) -> str:
    return _INTRO + "\n\n" + dedent(reason).strip()


REJECTION_TEMPLATES: dict[RejectionCategory, RejectionTemplate] = {
    RejectionCategory.EMPTY: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            There's no recognized reply content in your email. Make sure your
            reply is at the top of the email, we can't process inline replies.
            """
        ),
    ),
    RejectionCategory.NO_BODY: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            We couldn't find any reply text in your email. If you replied with
            only an attachment or a quote, please add some text of your own.
            """
        ),
    ),
    RejectionCategory.USER_NOT_FOUND: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Your reply was sent from an unknown email address. Try sending from
            the email address registered with your {site_name} account.
            """
        ),
    ),
    RejectionCategory.SCREENED_EMAIL: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Your reply was sent from a blocked email address. Try sending from
            another email address, or contact a staff member.
            """
        ),
    ),
    RejectionCategory.AUTO_GENERATED: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Our system detected that your email was automatically generated by
            a computer or auto-responder. Emails like that can't be accepted.
            """
        ),
    ),
    RejectionCategory.INACTIVE_USER: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Your account associated with this email address has not been
            activated. Please activate your account before sending emails in.
            """
        ),
    ),
    RejectionCategory.BLOCKED_USER: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            The user account associated with this email address has been
            blocked.
            """
        ),
    ),
    RejectionCategory.BAD_DESTINATION_ADDRESS: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            None of the destination email addresses are recognized. Make sure
            you are sending to the correct email address provided by staff.
            """
        ),
    ),
    RejectionCategory.STRANGERS_NOT_ALLOWED: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            The category you sent this email to only allows replies from users
            with valid accounts and known email addresses.
            """
        ),
    ),
    RejectionCategory.INSUFFICIENT_TRUST_LEVEL: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Your account does not have the required trust level to post new
            topics to this email address.
            """
        ),
    ),
    RejectionCategory.REPLY_USER_NOT_MATCHING: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Your reply was sent from a different email address than the one we
            expected, so we're not sure if this is the same person. Try sending
            from another email address, or contact a staff member.
            """
        ),
    ),
    RejectionCategory.TOPIC_NOT_FOUND: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            The topic you are replying to no longer exists. Perhaps it was
            deleted?
            """
        ),
    ),
    RejectionCategory.TOPIC_CLOSED: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            The topic you are replying to is currently closed and no longer
            accepting replies.
            """
        ),
    ),
    RejectionCategory.INVALID_POST: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Some possible causes are: complex formatting, message too large,
            message too small. Please try again.
            """
        ),
    ),
    RejectionCategory.INVALID_POST_SPECIFIED: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Reason:

            {post_error}

            If you can correct the problem, please try again.
            """
        ),
    ),
    RejectionCategory.INVALID_POST_ACTION: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            The post action was not recognized. Please try again, or post via
            the website if this continues.
            """
        ),
    ),
    RejectionCategory.INVALID_ACCESS: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Your account does not have the privileges to post new topics in
            that category. If you believe this is in error, contact a staff
            member.
            """
        ),
    ),
    RejectionCategory.RATE_LIMIT_SPECIFIED: RejectionTemplate(
        SUBJECT_TEMPLATE,
        _body(
            """
            Reason: {rate_limit_description}
            """
        ),
    ),
}


def template_for(category: RejectionCategory) -> RejectionTemplate:
    """Return the template registered for ``category``."""
    return REJECTION_TEMPLATES[category]


__all__ = ["REJECTION_TEMPLATES", "RejectionTemplate", "template_for"]
