"""
Heartbeat Registry

Tracks the current deadline of every pinged key and owns the
replace/cancel protocol that runs on each ping.
"""

from __future__ import annotations

import threading
from datetime import datetime
from functools import partial
from typing import Callable

import structlog

from deadswitch.exceptions import AlertQueueClosedError, RegistryClosedError
from deadswitch.heartbeat.models import Alert, HeartbeatEntry
from deadswitch.heartbeat.scheduler import ExpiryHandle, ExpiryScheduler

logger = structlog.get_logger(__name__)

# Receives alerts raised by expired heartbeats
AlertSink = Callable[[Alert], None]


class HeartbeatRegistry:
    """
    Concurrency-safe map of key -> active deadline.

    A single lock guards the map. Replacing a key's timer (cancel the old one,
    schedule the new one, store the entry) happens entirely under that lock,
    so no caller ever observes a half-updated entry.

    Cancellation never retracts an expiry that has already started: the old
    timer's state flag decides, and if it already fired the alert goes out
    while the new deadline is tracked as usual.
    """

    def __init__(
        self,
        scheduler: ExpiryScheduler,
        timeout: float,
        on_expiry: AlertSink,
    ) -> None:
        """
        Initialize the registry.

        Args:
            scheduler: Timer primitive used for deadlines
            timeout: Seconds a key may stay silent before alerting
            on_expiry: Called with the alert when a deadline passes
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self._scheduler = scheduler
        self._timeout = timeout
        self._on_expiry = on_expiry
        self._entries: dict[str, HeartbeatEntry] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_closed(self) -> bool:
        return self._closed

    def record_ping(self, key: str) -> None:
        """
        Record a heartbeat for a key, pushing its deadline to now + timeout.

        Args:
            key: Identifier of the monitored service instance

        Raises:
            RegistryClosedError: If the registry has been shut down
        """
        with self._lock:
            if self._closed:
                raise RegistryClosedError(key)

            previous = self._entries.get(key)
            if previous is not None:
                preempted = self._scheduler.cancel(previous.handle)
                if not preempted:
                    logger.debug("Previous expiry already started", key=key)

            handle = self._scheduler.schedule(self._timeout, partial(self._expire, key))
            self._entries[key] = HeartbeatEntry(
                key=key,
                deadline_at=handle.deadline_at,
                handle=handle,
            )

        logger.debug("Ping recorded", key=key, deadline=handle.deadline_at.isoformat())

    def _expire(self, key: str, handle: ExpiryHandle) -> None:
        """Expiry action: retire the entry and hand an alert downstream."""
        with self._lock:
            entry = self._entries.get(key)
            # A newer ping may already own the key
            if entry is not None and entry.handle is handle:
                del self._entries[key]

        alert = Alert(key=key)
        logger.info("Heartbeat missed", key=key, deadline=handle.deadline_at.isoformat())

        try:
            self._on_expiry(alert)
        except AlertQueueClosedError as e:
            logger.error("Alert dropped", key=key, error=str(e))

    def shutdown(self) -> None:
        """Cancel every outstanding timer and reject further pings."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

            cancelled = 0
            for entry in self._entries.values():
                if self._scheduler.cancel(entry.handle):
                    cancelled += 1
            self._entries.clear()

        logger.info("Heartbeat registry shut down", cancelled=cancelled)

    def deadline_for(self, key: str) -> datetime | None:
        """Get the current deadline for a key, or None if it is not tracked."""
        with self._lock:
            entry = self._entries.get(key)
            return entry.deadline_at if entry else None

    def keys(self) -> list[str]:
        """List keys that currently have a pending deadline."""
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
