"""
Exceptions

Error taxonomy shared across deadswitch components.
"""

from typing import Any


class DeadswitchError(Exception):
    """Base class for all deadswitch errors."""


class ConfigurationError(DeadswitchError):
    """Configuration is invalid; the service must not start."""


class RegistryClosedError(DeadswitchError):
    """A ping was recorded after the heartbeat registry was shut down."""

    def __init__(self, key: str) -> None:
        super().__init__(f"heartbeat registry is closed; ping for {key!r} rejected")
        self.key = key


class AlertQueueClosedError(DeadswitchError):
    """An alert was enqueued after the dispatcher stopped accepting alerts."""

    def __init__(self, key: str) -> None:
        super().__init__(f"alert queue is closed; alert for {key!r} dropped")
        self.key = key


class NotifyError(DeadswitchError):
    """A notifier failed to deliver an alert. Returned by notifiers, not raised out of them."""

    def __init__(
        self,
        notifier: str,
        message: str,
        target: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.notifier = notifier
        self.message = message
        self.target = target
        self.status_code = status_code
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Context for structured logging."""
        return {
            "notifier": self.notifier,
            "target": self.target,
            "status_code": self.status_code,
            "error": self.message,
        }
