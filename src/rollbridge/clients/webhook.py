# src/rollbridge/clients/webhook.py
"""Webhook alert delivery."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from rollbridge.clients.base import HttpClientBase
from rollbridge.contracts.errors import RpcError


class AlertDeliveryError(RpcError):
    """The alert endpoint did not accept the escalation."""


class WebhookAlertHook(HttpClientBase):
    """POSTs each escalation as one JSON document.

    Body:
        {"subject": ..., "reason": ..., "context": {...}, "raised_at": iso8601}
    """

    error_class = AlertDeliveryError

    def __init__(self, url: str, *, timeout: float = 10.0, transport: httpx.BaseTransport | None = None) -> None:
        super().__init__(url, timeout=timeout, transport=transport)
        self._url = url

    def escalate(self, subject: str, reason: str, context: Mapping[str, Any]) -> None:
        self._request(
            "POST",
            self._url,
            json={
                "subject": subject,
                "reason": reason,
                "context": {k: str(v) for k, v in context.items()},
                "raised_at": datetime.now(UTC).isoformat(),
            },
        )
