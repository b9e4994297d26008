"""No-op notifier: logs missed heartbeats without delivering them anywhere."""

from __future__ import annotations

import structlog

from deadswitch.heartbeat.models import Alert
from deadswitch.notifiers.base import Notifier, NotifierKind

logger = structlog.get_logger(__name__)


class NoOpNotifier(Notifier):
    kind = NotifierKind.NOOP

    async def _deliver(self, alert: Alert) -> None:
        logger.info(
            "Missed heartbeat (noop notifier)",
            key=alert.key,
            fired_at=alert.fired_at.isoformat(),
        )
