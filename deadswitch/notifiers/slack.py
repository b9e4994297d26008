"""
Slack Notifier

Delivers alerts to a Slack incoming webhook as a coloured attachment.
"""

from __future__ import annotations

from typing import Any

import httpx

from deadswitch.heartbeat.models import Alert
from deadswitch.notifiers.base import (
    DEFAULT_HTTP_TIMEOUT,
    HttpNotifier,
    NotifierKind,
    missed_message,
)

ALERT_TITLE = "Dead Mans Switch missed"


class SlackNotifier(HttpNotifier):
    """Posts a styled message block to a Slack webhook."""

    kind = NotifierKind.SLACK

    def __init__(
        self,
        url: str,
        icon_emoji: str,
        color: str,
        name: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(url, name=name, timeout=timeout, client=client)
        self.icon_emoji = icon_emoji
        self.color = color

    def build_payload(self, alert: Alert) -> dict[str, Any]:
        """Build Slack attachment payload."""
        text = (
            f"*{self.icon_emoji} {ALERT_TITLE}*\n"
            f"Service {alert.key} missed its dead mans switch"
        )

        return {
            "text": f"{ALERT_TITLE}: {missed_message(alert.key)}",  # Fallback
            "attachments": [
                {
                    "color": self.color,
                    "blocks": [
                        {
                            "type": "section",
                            "text": {
                                "type": "mrkdwn",
                                "text": text,
                                "emoji": True,
                            },
                        }
                    ],
                }
            ],
        }

    async def _deliver(self, alert: Alert) -> None:
        await self._send("POST", self.build_payload(alert))
