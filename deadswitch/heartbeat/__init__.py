"""
Heartbeat Engine

Dead man's switch core for DEADSWITCH.

Provides:
- Expiry scheduler for one-shot, cancellable deadlines
- Registry tracking the current deadline of every key
- Dispatcher fanning missed-heartbeat alerts out to notifiers
- Monitor wiring the three together
"""

from deadswitch.heartbeat.models import (
    Alert,
    HeartbeatEntry,
    TimerState,
)
from deadswitch.heartbeat.scheduler import (
    ExpiryHandle,
    ExpiryScheduler,
)
from deadswitch.heartbeat.registry import HeartbeatRegistry
from deadswitch.heartbeat.dispatcher import AlertDispatcher
from deadswitch.heartbeat.monitor import HeartbeatMonitor

__all__ = [
    # Models
    "Alert",
    "HeartbeatEntry",
    "TimerState",
    # Scheduler
    "ExpiryHandle",
    "ExpiryScheduler",
    # Registry
    "HeartbeatRegistry",
    # Dispatcher
    "AlertDispatcher",
    # Monitor
    "HeartbeatMonitor",
]
