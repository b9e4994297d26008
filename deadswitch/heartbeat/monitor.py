"""
Heartbeat Monitor

Wires the expiry scheduler, heartbeat registry and alert dispatcher
together for one notifier set and manages their lifecycle.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Sequence

import structlog

from deadswitch.heartbeat.dispatcher import AlertDispatcher
from deadswitch.heartbeat.registry import HeartbeatRegistry
from deadswitch.heartbeat.scheduler import ExpiryScheduler

if TYPE_CHECKING:
    from deadswitch.notifiers.base import Notifier

logger = structlog.get_logger(__name__)


class HeartbeatMonitor:
    """
    The heartbeat timeout engine.

    Pings flow into the registry; expired deadlines become alerts on the
    dispatcher's queue; the dispatch loop runs as its own task.
    """

    def __init__(
        self,
        notifiers: Sequence[Notifier],
        timeout: float,
        scheduler: ExpiryScheduler | None = None,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            notifiers: Notifier set alerts are fanned out to
            timeout: Seconds a key may stay silent before alerting
            scheduler: Expiry scheduler to use; a default one is created when omitted
        """
        self.scheduler = scheduler or ExpiryScheduler()
        self.dispatcher = AlertDispatcher(notifiers)
        self.registry = HeartbeatRegistry(
            self.scheduler,
            timeout=timeout,
            on_expiry=self.dispatcher.enqueue,
        )
        self._dispatch_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_dispatching(self) -> bool:
        """Check if the dispatch loop is alive."""
        return self._dispatch_task is not None and not self._dispatch_task.done()

    async def start(self) -> None:
        """Start the dispatch loop and the expiry scheduler."""
        if self._running:
            logger.warning("Heartbeat monitor already running")
            return

        self._dispatch_task = asyncio.create_task(
            self.dispatcher.run(),
            name="deadswitch-dispatcher",
        )
        self._dispatch_task.add_done_callback(self._on_dispatcher_done)
        await self.scheduler.start()
        self._running = True

        logger.info(
            "Heartbeat monitor started",
            timeout=self.registry.timeout,
            notifiers=len(self.dispatcher.notifiers),
        )

    def _on_dispatcher_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            error = "cancelled"
        else:
            exc = task.exception()
            error = str(exc) if exc else None

        if not self._running:
            return

        # No alert can be delivered from here on; refuse new alerts and pings
        untracked = self.registry.keys()
        self.dispatcher.close()
        dropped = self.dispatcher.discard_pending()
        self.registry.shutdown()

        logger.critical(
            "Alert dispatcher stopped unexpectedly",
            error=error,
            dropped_alerts=[a.key for a in dropped],
            untracked_keys=untracked,
        )

    def record_ping(self, key: str) -> None:
        """
        Record a heartbeat for a key.

        Raises:
            RegistryClosedError: If the monitor is stopped or its dispatch
                                 loop has died
        """
        self.registry.record_ping(key)

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """
        Stop tracking heartbeats and shut down delivery.

        Pending deadlines are discarded. Alerts already queued are still
        delivered, for at most drain_timeout seconds.
        """
        if not self._running:
            return

        logger.info("Stopping heartbeat monitor")
        self._running = False

        self.registry.shutdown()
        await self.scheduler.stop()
        self.dispatcher.close()

        task = self._dispatch_task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(task, timeout=drain_timeout)
            except TimeoutError:
                logger.warning(
                    "Alert dispatcher did not drain in time",
                    pending=self.dispatcher.pending,
                )

        for notifier in self.dispatcher.notifiers:
            await notifier.close()

        logger.info("Heartbeat monitor stopped")
