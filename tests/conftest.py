"""
Pytest configuration and shared fixtures.
"""

import asyncio
import time
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from deadswitch.exceptions import NotifyError
from deadswitch.heartbeat import Alert, ExpiryScheduler
from deadswitch.notifiers.base import Notifier, NotifierKind

# Short enough to keep the suite fast, long enough to be stable on a busy CI box
TIMEOUT = 0.3


class RecordingNotifier(Notifier):
    """Notifier that remembers every alert it was asked to deliver."""

    kind = NotifierKind.NOOP

    def __init__(self, name: str = "recording", delay: float = 0.0) -> None:
        super().__init__(name)
        self.alerts: list[Alert] = []
        self.delay = delay

    async def _deliver(self, alert: Alert) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.alerts.append(alert)

    @property
    def keys(self) -> list[str]:
        return [a.key for a in self.alerts]

    async def wait_for(self, count: int, timeout: float = 2.0) -> None:
        """Wait until at least count alerts were delivered."""
        deadline = time.monotonic() + timeout
        while len(self.alerts) < count:
            if time.monotonic() > deadline:
                raise AssertionError(f"{self.name}: expected {count} alerts, got {len(self.alerts)}")
            await asyncio.sleep(0.01)


class FailingNotifier(Notifier):
    """Notifier whose delivery always fails."""

    kind = NotifierKind.WEBHOOK

    def __init__(self, name: str = "failing") -> None:
        super().__init__(name)
        self.attempts = 0

    @property
    def target(self) -> str | None:
        return "http://unreachable.invalid/hook"

    async def _deliver(self, alert: Alert) -> None:
        self.attempts += 1
        raise NotifyError(self.name, "connection refused", target=self.target)


class ExplodingNotifier(Notifier):
    """Notifier that breaks its contract and raises out of notify()."""

    kind = NotifierKind.NOOP

    def __init__(self, name: str = "exploding") -> None:
        super().__init__(name)

    async def notify(self, alert: Alert) -> NotifyError | None:
        raise RuntimeError("notifier bug")

    async def _deliver(self, alert: Alert) -> None:
        raise AssertionError("unreachable")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DEADSWITCH_* variables from the developer's shell out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("DEADSWITCH_"):
            monkeypatch.delenv(name)


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    """Fresh recording notifier."""
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    """Notifier that always fails."""
    return FailingNotifier()


@pytest_asyncio.fixture
async def expiry_scheduler() -> AsyncIterator[ExpiryScheduler]:
    """Running expiry scheduler, stopped after the test."""
    scheduler = ExpiryScheduler()
    await scheduler.start()
    yield scheduler
    await scheduler.stop()
