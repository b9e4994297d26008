"""
Notifier Base

Interface shared by all alert delivery backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import httpx
import structlog

from deadswitch.exceptions import NotifyError
from deadswitch.heartbeat.models import Alert

logger = structlog.get_logger(__name__)

DEFAULT_HTTP_TIMEOUT = 10.0


class NotifierKind(str, Enum):
    """Available notifier backends."""

    WEBHOOK = "webhook"  # Generic HTTP webhook
    SLACK = "slack"  # Slack incoming webhook
    NOOP = "noop"  # Log only


def missed_message(key: str) -> str:
    """Human-readable description of a missed heartbeat."""
    return f"service {key} missed its dead mans switch"


class Notifier(ABC):
    """
    Base class for alert delivery backends.

    Subclasses implement _deliver() and raise NotifyError on failure.
    notify() turns that into a return value, so callers never need to
    guard against a notifier raising.
    """

    kind: NotifierKind

    def __init__(self, name: str | None = None) -> None:
        self.name = name or self.kind.value

    @property
    def target(self) -> str | None:
        """Where alerts are delivered, for logging."""
        return None

    async def notify(self, alert: Alert) -> NotifyError | None:
        """
        Attempt to deliver one alert.

        Args:
            alert: The alert to deliver

        Returns:
            None on success, the NotifyError describing the failure otherwise
        """
        try:
            await self._deliver(alert)
        except NotifyError as e:
            return e
        return None

    @abstractmethod
    async def _deliver(self, alert: Alert) -> None:
        """Deliver the alert or raise NotifyError."""

    async def close(self) -> None:
        """Release any resources held by the notifier."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, target={self.target!r})"


class HttpNotifier(Notifier):
    """Base for notifiers that deliver over HTTP."""

    def __init__(
        self,
        url: str,
        name: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            url: Endpoint alerts are sent to
            name: Label used in logs
            timeout: Per-request timeout in seconds
            client: Shared HTTP client. When omitted the notifier creates and
                    owns its own.
        """
        super().__init__(name)
        self.url = url
        self._timeout = timeout
        self._http_client = client
        self._owns_client = client is None

    @property
    def target(self) -> str | None:
        return self.url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this notifier created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _send(
        self,
        method: str,
        payload: Any,
        headers: list[tuple[str, str]] | None = None,
    ) -> httpx.Response:
        """
        Send a JSON payload and require a 2xx response.

        Raises:
            NotifyError: On transport errors, non-2xx responses, or a request
                         that cannot be built
        """
        client = await self._get_client()

        try:
            response = await client.request(
                method,
                self.url,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise NotifyError(
                self.name,
                f"{method} {self.url} returned {status}",
                target=self.url,
                status_code=status,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise NotifyError(
                self.name,
                f"{method} {self.url} failed: {type(e).__name__}: {e}",
                target=self.url,
                cause=e,
            ) from e
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise NotifyError(
                self.name,
                f"could not build request: {e}",
                target=self.url,
                cause=e,
            ) from e

        logger.debug(
            "Notifier request completed",
            notifier=self.name,
            method=method,
            target=self.url,
            status_code=response.status_code,
        )
        return response
