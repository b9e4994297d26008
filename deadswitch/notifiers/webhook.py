"""
Webhook Notifier

Delivers alerts to a generic HTTP endpoint as JSON.
"""

from __future__ import annotations

import copy
from typing import Any

import httpx

from deadswitch.heartbeat.models import Alert
from deadswitch.notifiers.base import (
    DEFAULT_HTTP_TIMEOUT,
    HttpNotifier,
    NotifierKind,
    missed_message,
)


class WebhookNotifier(HttpNotifier):
    """
    Sends each alert as a JSON document.

    When a body template is configured it forms the base of the payload and
    the ``id`` and ``message`` fields are written over it; everything else in
    the template is sent unchanged.
    """

    kind = NotifierKind.WEBHOOK

    def __init__(
        self,
        url: str,
        method: str = "POST",
        body: dict[str, Any] | None = None,
        headers: list[tuple[str, str]] | None = None,
        name: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(url, name=name, timeout=timeout, client=client)
        self.method = method.upper()
        self.body = body
        self.headers = list(headers or [])

    def build_payload(self, alert: Alert) -> dict[str, Any]:
        """Build the request body for an alert."""
        payload = copy.deepcopy(self.body) if self.body else {}
        payload["id"] = alert.key
        payload["message"] = missed_message(alert.key)
        return payload

    async def _deliver(self, alert: Alert) -> None:
        await self._send(self.method, self.build_payload(alert), headers=self.headers)
