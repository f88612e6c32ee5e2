"""Render rejection notices from templates."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..core.models import RejectionCategory, RejectionMessage
from .templates import template_for

AUTO_GENERATED_REPLY_HEADER = "X-Auto-Generated-Reply"


class RejectionMailer:
    """Build :class:`RejectionMessage` objects for a rejection category."""

    def send_rejection(
        self,
        category: RejectionCategory,
        recipient: str,
        template_args: Mapping[str, Any],
        *,
        mark_as_reply_to_auto_generated: bool = False,
    ) -> RejectionMessage:
        """Render the notice for ``category`` addressed to ``recipient``."""
        template = template_for(category)
        headers = {"Auto-Submitted": "auto-replied"}
        if mark_as_reply_to_auto_generated:
            headers[AUTO_GENERATED_REPLY_HEADER] = "marked"
        return RejectionMessage(
            to=recipient,
            subject=template.subject.format_map(template_args),
            body=template.body.format_map(template_args),
            category=category,
            headers=headers,
        )


__all__ = ["AUTO_GENERATED_REPLY_HEADER", "RejectionMailer"]
