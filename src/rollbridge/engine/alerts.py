"""Escalation hooks.

An escalation replaces the old "spin until someone notices" loops: the
condition is logged, handed to every configured hook, and the caller
raises ManualReviewRequired so the service stops instead of guessing.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from rollbridge.contracts.protocols import AlertHook

logger = structlog.get_logger(__name__)


class LoggingAlertHook:
    """Writes the escalation as an error-level structured log event."""

    def escalate(self, subject: str, reason: str, context: Mapping[str, Any]) -> None:
        logger.error("manual_review_required", subject=subject, reason=reason, context=dict(context))


class CompositeAlertHook:
    """Fans an escalation out to several hooks.

    A hook that fails to deliver does not stop the others; the failure is
    logged so the operator can see that an alert channel is broken.
    """

    def __init__(self, hooks: Sequence[AlertHook]) -> None:
        self._hooks = list(hooks)

    def escalate(self, subject: str, reason: str, context: Mapping[str, Any]) -> None:
        for hook in self._hooks:
            try:
                hook.escalate(subject, reason, context)
            except Exception as e:
                logger.error(
                    "alert_delivery_failed",
                    hook=type(hook).__name__,
                    subject=subject,
                    error=str(e),
                    error_type=type(e).__name__,
                )
