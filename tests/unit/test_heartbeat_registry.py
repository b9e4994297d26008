"""
Tests for the Heartbeat Registry.
"""

import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from deadswitch.exceptions import AlertQueueClosedError, RegistryClosedError
from deadswitch.heartbeat import Alert, ExpiryScheduler, HeartbeatRegistry, TimerState

from conftest import TIMEOUT


@pytest.fixture
def alerts() -> list[Alert]:
    """Sink collecting alerts raised by the registry."""
    return []


class TestRegistryBookkeeping:
    """Tests that do not wait for timers."""

    def test_timeout_must_be_positive(self) -> None:
        """Test a zero timeout is rejected."""
        with pytest.raises(ValueError):
            HeartbeatRegistry(ExpiryScheduler(), timeout=0, on_expiry=lambda a: None)

    def test_first_ping_creates_entry(self, alerts: list[Alert]) -> None:
        """Test pinging an unknown key starts tracking it."""
        registry = HeartbeatRegistry(ExpiryScheduler(), timeout=30, on_expiry=alerts.append)
        before = datetime.now(timezone.utc)

        registry.record_ping("svc-a")

        assert "svc-a" in registry
        assert len(registry) == 1
        deadline = registry.deadline_for("svc-a")
        assert deadline is not None
        assert deadline >= before + timedelta(seconds=30)

    def test_unknown_key_has_no_deadline(self) -> None:
        """Test deadline_for returns None for untracked keys."""
        registry = HeartbeatRegistry(ExpiryScheduler(), timeout=30, on_expiry=lambda a: None)
        assert registry.deadline_for("missing") is None

    def test_repeated_pings_keep_one_timer(self) -> None:
        """Test each ping replaces the previous timer instead of adding one."""
        scheduler = ExpiryScheduler()
        registry = HeartbeatRegistry(scheduler, timeout=30, on_expiry=lambda a: None)

        for _ in range(10):
            registry.record_ping("svc-a")

        assert len(registry) == 1
        assert scheduler.pending_count == 1

    def test_repeated_pings_match_last_ping(self) -> None:
        """Test N rapid pings leave the same deadline as the last ping alone."""
        scheduler = ExpiryScheduler()
        registry = HeartbeatRegistry(scheduler, timeout=30, on_expiry=lambda a: None)

        registry.record_ping("svc-a")
        first_deadline = registry.deadline_for("svc-a")
        for _ in range(5):
            registry.record_ping("svc-a")

        (job,) = scheduler._scheduler.get_jobs()
        assert registry.deadline_for("svc-a") >= first_deadline
        assert registry.deadline_for("svc-a") == job.trigger.run_date

    def test_keys_are_independent(self) -> None:
        """Test pinging one key leaves another key's deadline alone."""
        registry = HeartbeatRegistry(ExpiryScheduler(), timeout=30, on_expiry=lambda a: None)
        registry.record_ping("svc-a")
        deadline_a = registry.deadline_for("svc-a")

        registry.record_ping("svc-b")
        registry.record_ping("svc-b")

        assert registry.deadline_for("svc-a") == deadline_a
        assert registry.keys() == ["svc-a", "svc-b"]

    def test_shutdown_rejects_pings(self) -> None:
        """Test pings after shutdown raise RegistryClosedError."""
        scheduler = ExpiryScheduler()
        registry = HeartbeatRegistry(scheduler, timeout=30, on_expiry=lambda a: None)
        registry.record_ping("svc-a")

        registry.shutdown()

        assert registry.is_closed is True
        assert len(registry) == 0
        assert scheduler.pending_count == 0
        with pytest.raises(RegistryClosedError):
            registry.record_ping("svc-a")

    def test_shutdown_twice(self) -> None:
        """Test shutdown is idempotent."""
        registry = HeartbeatRegistry(ExpiryScheduler(), timeout=30, on_expiry=lambda a: None)
        registry.shutdown()
        registry.shutdown()
        assert registry.is_closed is True

    def test_inspection_takes_the_lock(self) -> None:
        """Test len() and membership wait for an in-progress update."""
        registry = HeartbeatRegistry(ExpiryScheduler(), timeout=30, on_expiry=lambda a: None)
        registry.record_ping("svc-a")
        results: list[object] = []

        def inspect() -> None:
            results.append(len(registry))
            results.append("svc-a" in registry)

        with registry._lock:
            reader = threading.Thread(target=inspect)
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()
            assert results == []

        reader.join(timeout=2)
        assert results == [1, True]


class TestRegistryConcurrency:
    """Tests for pings arriving from several threads at once."""

    @pytest.mark.asyncio
    async def test_concurrent_pings_keep_one_timer(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test concurrent pings for one key leave a single deadline and alert once."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=alerts.append)

        def ping_many() -> None:
            for _ in range(200):
                registry.record_ping("svc-a")

        await asyncio.gather(*(asyncio.to_thread(ping_many) for _ in range(8)))

        assert len(registry) == 1
        assert expiry_scheduler.pending_count == 1
        (job,) = expiry_scheduler._scheduler.get_jobs()
        assert registry.deadline_for("svc-a") == job.trigger.run_date

        await asyncio.sleep(TIMEOUT * 3)
        assert [a.key for a in alerts] == ["svc-a"]
        assert expiry_scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_pings_on_many_keys(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test threads pinging distinct keys each get their own deadline."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=30, on_expiry=alerts.append)

        def ping_range(worker: int) -> None:
            for i in range(50):
                registry.record_ping(f"svc-{worker}-{i % 10}")

        await asyncio.gather(*(asyncio.to_thread(ping_range, w) for w in range(8)))

        assert len(registry) == 80
        assert expiry_scheduler.pending_count == 80
        registry.shutdown()
        assert expiry_scheduler.pending_count == 0


class TestRegistryExpiry:
    """Tests for the ping/expiry interplay."""

    @pytest.mark.asyncio
    async def test_silent_key_alerts_once(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test a key pinged once alerts exactly once after the timeout."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=alerts.append)

        registry.record_ping("svc-a")
        await asyncio.sleep(TIMEOUT * 3)

        assert [a.key for a in alerts] == ["svc-a"]
        assert "svc-a" not in registry

    @pytest.mark.asyncio
    async def test_regular_pings_prevent_alert(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test pings spaced below the timeout keep the key alive."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=alerts.append)

        for _ in range(6):
            registry.record_ping("svc-a")
            await asyncio.sleep(TIMEOUT / 3)

        # Well past the first deadline, still no alert
        assert alerts == []

        await asyncio.sleep(TIMEOUT * 2)
        assert [a.key for a in alerts] == ["svc-a"]

    @pytest.mark.asyncio
    async def test_silent_key_does_not_suppress_other(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test one key's pings never hold back another key's alert."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=alerts.append)

        registry.record_ping("svc-a")
        for _ in range(6):
            registry.record_ping("svc-b")
            await asyncio.sleep(TIMEOUT / 3)

        assert [a.key for a in alerts] == ["svc-a"]
        assert "svc-b" in registry

    @pytest.mark.asyncio
    async def test_late_ping_does_not_retract_alert(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test a ping after the deadline starts a new interval and keeps the fired alert."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=alerts.append)

        registry.record_ping("svc-a")
        await asyncio.sleep(TIMEOUT / 2)
        registry.record_ping("svc-a")
        await asyncio.sleep(TIMEOUT * 1.5)
        assert len(alerts) == 1

        registry.record_ping("svc-a")
        assert len(alerts) == 1
        assert "svc-a" in registry

    @pytest.mark.asyncio
    async def test_ping_during_inflight_expiry(self, alerts: list[Alert]) -> None:
        """Test a ping racing an expiry that already started keeps both effects."""
        scheduler = ExpiryScheduler()
        registry = HeartbeatRegistry(scheduler, timeout=30, on_expiry=alerts.append)
        registry.record_ping("svc-a")
        (job,) = scheduler._scheduler.get_jobs()
        inflight = job.func.__self__

        # Expiry action starts first, then the ping arrives. The executor
        # takes a one-shot job out of the store before running it.
        scheduler._scheduler.remove_job(inflight.id)
        await inflight.fire()
        registry.record_ping("svc-a")

        assert inflight.state == TimerState.FIRED
        assert [a.key for a in alerts] == ["svc-a"]
        assert "svc-a" in registry
        assert scheduler.pending_count == 1
        (current,) = scheduler._scheduler.get_jobs()
        fresh = current.func.__self__
        assert fresh is not inflight
        assert fresh.state == TimerState.PENDING
        assert registry.deadline_for("svc-a") == fresh.deadline_at

    @pytest.mark.asyncio
    async def test_ping_from_inside_expiry_action(self, expiry_scheduler: ExpiryScheduler) -> None:
        """Test the registry lock is not held while the alert is handed off."""
        alerts: list[Alert] = []

        def on_expiry(alert: Alert) -> None:
            alerts.append(alert)
            registry.record_ping(alert.key)

        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=on_expiry)
        registry.record_ping("svc-a")
        await asyncio.sleep(TIMEOUT * 1.5)

        assert alerts[0].key == "svc-a"
        assert "svc-a" in registry
        registry.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_alerts(
        self, expiry_scheduler: ExpiryScheduler, alerts: list[Alert]
    ) -> None:
        """Test deadlines outstanding at shutdown never alert."""
        registry = HeartbeatRegistry(expiry_scheduler, timeout=TIMEOUT, on_expiry=alerts.append)
        registry.record_ping("svc-a")
        registry.record_ping("svc-b")

        registry.shutdown()
        await asyncio.sleep(TIMEOUT * 2)

        assert alerts == []

    @pytest.mark.asyncio
    async def test_closed_alert_queue_is_logged(self) -> None:
        """Test a closed downstream queue does not break the expiry action."""

        def closed_sink(alert: Alert) -> None:
            raise AlertQueueClosedError(alert.key)

        scheduler = ExpiryScheduler()
        registry = HeartbeatRegistry(scheduler, timeout=30, on_expiry=closed_sink)
        registry.record_ping("svc-a")
        (job,) = scheduler._scheduler.get_jobs()

        await job.func()

        assert "svc-a" not in registry
