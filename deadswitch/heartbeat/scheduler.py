"""
Expiry Scheduler

One-shot "run this after a delay unless cancelled" timers on top of
APScheduler. All pending timers live in a single deadline-ordered job store
serviced by one wakeup timer on the event loop.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable
from uuid import uuid4

import structlog
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from deadswitch.heartbeat.models import TimerState

logger = structlog.get_logger(__name__)

# Callback run when a timer expires; receives the handle that fired
ExpiryAction = Callable[["ExpiryHandle"], None]


class ExpiryHandle:
    """
    A single pending expiry.

    The state flag moves out of PENDING exactly once, either to FIRED (the
    expiry action runs) or to CANCELLED (it never will). Both transitions go
    through the same lock, so a cancel and a fire can never both succeed.
    """

    def __init__(self, action: ExpiryAction, deadline_at: datetime) -> None:
        self.id = str(uuid4())
        self.deadline_at = deadline_at
        self._action = action
        self._state = TimerState.PENDING
        self._lock = threading.Lock()

    @property
    def state(self) -> TimerState:
        return self._state

    def _transition(self, target: TimerState) -> bool:
        with self._lock:
            if self._state != TimerState.PENDING:
                return False
            self._state = target
            return True

    def cancel(self) -> bool:
        """Cancel the timer. Returns True only if the action was preempted."""
        return self._transition(TimerState.CANCELLED)

    async def fire(self) -> None:
        """Run the expiry action unless the timer was cancelled first."""
        if not self._transition(TimerState.FIRED):
            logger.debug("Skipping cancelled expiry", handle_id=self.id)
            return
        self._action(self)

    def __repr__(self) -> str:
        return f"ExpiryHandle(id={self.id!r}, state={self._state.value}, deadline_at={self.deadline_at.isoformat()})"


class ExpiryScheduler:
    """
    Schedules and cancels one-shot expiry timers.

    Uses an APScheduler AsyncIOScheduler with an in-memory job store, so the
    cost of a pending timer is one job entry rather than one thread.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        """
        Initialize the expiry scheduler.

        Args:
            scheduler: Preconfigured APScheduler instance. A default one is
                       created when omitted.
        """
        self._scheduler = scheduler or self._create_scheduler()
        self._running = False

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure the APScheduler instance."""
        jobstores = {
            "default": MemoryJobStore(),
        }
        executors = {
            "default": AsyncIOExecutor(),
        }
        job_defaults = {
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": None,  # A late expiry still has to alert
        }

        return AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone="UTC",
        )

    async def start(self) -> None:
        """Start servicing timers. Must be called from a running event loop."""
        if self._running:
            logger.warning("Expiry scheduler already running")
            return

        self._scheduler.start()
        self._running = True
        logger.info("Expiry scheduler started", pending=self.pending_count)

    async def stop(self) -> None:
        """Stop the scheduler. Timers that have not fired are discarded."""
        if not self._running:
            return

        self._scheduler.shutdown(wait=False)
        self._running = False
        # AsyncIOScheduler defers its shutdown onto the loop
        await asyncio.sleep(0)
        logger.info("Expiry scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is servicing timers."""
        return self._running

    @property
    def pending_count(self) -> int:
        """Number of timers waiting in the job store."""
        return len(self._scheduler.get_jobs())

    def schedule(self, delay: float, action: ExpiryAction) -> ExpiryHandle:
        """
        Schedule an action to run once after a delay.

        Args:
            delay: Seconds from now until the action runs
            action: Callback invoked on the event loop when the timer fires

        Returns:
            Handle used to cancel the timer
        """
        deadline_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
        handle = ExpiryHandle(action, deadline_at)

        self._scheduler.add_job(
            handle.fire,
            trigger=DateTrigger(run_date=deadline_at),
            id=handle.id,
            name=f"expiry:{handle.id}",
        )
        return handle

    def cancel(self, handle: ExpiryHandle) -> bool:
        """
        Cancel a pending timer.

        Args:
            handle: Handle returned by schedule()

        Returns:
            True if the cancellation preempted the action, False if the action
            had already started or the timer was already cancelled
        """
        if not handle.cancel():
            return False

        try:
            self._scheduler.remove_job(handle.id)
        except JobLookupError:
            # Already handed to the executor; fire() will see CANCELLED
            pass
        return True
