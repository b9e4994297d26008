"""
Alert Dispatcher

Decouples raising an alert from delivering it. Expired heartbeats push
alerts onto a queue; a single dispatch loop fans each one out to every
notifier.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Sequence

import structlog

from deadswitch.exceptions import AlertQueueClosedError, NotifyError
from deadswitch.heartbeat.models import Alert

if TYPE_CHECKING:
    from deadswitch.notifiers.base import Notifier

logger = structlog.get_logger(__name__)

# Queued after the last alert when the dispatcher is closed
_CLOSED = object()


class AlertDispatcher:
    """
    Fans alerts out to a fixed set of notifiers.

    Each notifier gets at most one delivery attempt per alert. A failing or
    slow notifier never prevents the others from being invoked for the same
    alert, and nothing here feeds back into heartbeat tracking.
    """

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        """
        Initialize the dispatcher.

        Args:
            notifiers: Notifier set, fixed for the dispatcher's lifetime
        """
        self._notifiers: tuple[Notifier, ...] = tuple(notifiers)
        self._queue: asyncio.Queue[Alert | object] = asyncio.Queue()
        self._closed = False
        self.delivered_count = 0
        self.failed_count = 0

    @property
    def notifiers(self) -> tuple[Notifier, ...]:
        return self._notifiers

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Alerts waiting to be dispatched."""
        return self._queue.qsize()

    def enqueue(self, alert: Alert) -> None:
        """
        Queue an alert for delivery. Never blocks.

        Raises:
            AlertQueueClosedError: If the dispatcher has been closed
        """
        if self._closed:
            raise AlertQueueClosedError(alert.key)
        self._queue.put_nowait(alert)

    def close(self) -> None:
        """Stop accepting alerts. The run loop exits after draining the queue."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def discard_pending(self) -> list[Alert]:
        """
        Empty the queue without delivering anything.

        Used once the dispatch loop is gone; each discarded alert is logged
        at error level.

        Returns:
            The alerts that will never be delivered
        """
        dropped: list[Alert] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if item is _CLOSED:
                continue
            dropped.append(item)
            logger.error("Alert dropped", key=item.key, reason="dispatcher not running")
        return dropped

    async def join(self) -> None:
        """Wait until every queued alert has been dispatched."""
        await self._queue.join()

    async def run(self) -> None:
        """Dispatch loop. Returns once the dispatcher is closed and drained."""
        logger.info(
            "Alert dispatcher started",
            notifiers=[n.name for n in self._notifiers],
        )

        while True:
            item = await self._queue.get()
            try:
                if item is _CLOSED:
                    logger.info("Alert dispatcher closed")
                    return
                await self.dispatch(item)
            finally:
                self._queue.task_done()

    async def dispatch(self, alert: Alert) -> list[NotifyError]:
        """
        Deliver one alert to every notifier concurrently.

        Args:
            alert: The alert to deliver

        Returns:
            Errors from the notifiers that failed
        """
        results = await asyncio.gather(
            *(self._deliver(notifier, alert) for notifier in self._notifiers)
        )
        return [error for error in results if error is not None]

    async def _deliver(self, notifier: Notifier, alert: Alert) -> NotifyError | None:
        """Run one notifier and log its outcome."""
        try:
            error = await notifier.notify(alert)
        except Exception as e:
            logger.error(
                "Notifier raised unexpectedly",
                notifier=notifier.name,
                key=alert.key,
                error=str(e),
                exc_info=True,
            )
            error = NotifyError(notifier.name, str(e), target=notifier.target, cause=e)

        if error is None:
            self.delivered_count += 1
            logger.info("Alert delivered", notifier=notifier.name, key=alert.key)
        else:
            self.failed_count += 1
            logger.warning("Alert delivery failed", key=alert.key, **error.to_dict())
        return error
