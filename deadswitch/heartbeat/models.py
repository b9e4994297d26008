"""
Heartbeat Models

Data models for heartbeat tracking and missed-heartbeat alerts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from deadswitch.heartbeat.scheduler import ExpiryHandle


class TimerState(str, Enum):
    """Lifecycle of a single expiry timer."""

    PENDING = "pending"
    CANCELLED = "cancelled"  # Superseded by a newer ping before firing
    FIRED = "fired"  # Expiry action started; can no longer be cancelled


class Alert(BaseModel):
    """
    A missed heartbeat.

    Produced exactly once per expiry event and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    fired_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class HeartbeatEntry:
    """The active deadline for one key. Owned by the heartbeat registry."""

    key: str
    deadline_at: datetime
    handle: ExpiryHandle
