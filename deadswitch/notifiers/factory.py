"""
Notifier Factory

Builds the fixed notifier set from validated settings.
"""

from __future__ import annotations

import httpx
import structlog

from deadswitch.config import NotifierSettings, Settings
from deadswitch.exceptions import ConfigurationError
from deadswitch.notifiers.base import DEFAULT_HTTP_TIMEOUT, Notifier, NotifierKind
from deadswitch.notifiers.noop import NoOpNotifier
from deadswitch.notifiers.slack import SlackNotifier
from deadswitch.notifiers.webhook import WebhookNotifier

logger = structlog.get_logger(__name__)


def build_notifier(
    settings: NotifierSettings,
    name: str | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> Notifier:
    """
    Build a single notifier.

    Raises:
        ConfigurationError: If the section required by the notifier type is missing
    """
    match settings.type:
        case NotifierKind.WEBHOOK:
            if settings.webhook is None:
                raise ConfigurationError("no webhook settings found")
            return WebhookNotifier(
                url=settings.webhook.url,
                method=settings.webhook.method,
                body=settings.webhook.body,
                headers=settings.webhook.headers,
                name=name,
                timeout=timeout,
                client=client,
            )
        case NotifierKind.SLACK:
            if settings.slack is None:
                raise ConfigurationError("no slack settings found")
            return SlackNotifier(
                url=settings.slack.url,
                icon_emoji=settings.slack.icon_emoji,
                color=settings.slack.color,
                name=name,
                timeout=timeout,
                client=client,
            )
        case NotifierKind.NOOP:
            return NoOpNotifier(name=name)
        case _:
            raise ConfigurationError(f"unsupported notifier: {settings.type}")


def build_notifier_set(
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> tuple[Notifier, ...]:
    """
    Build every configured notifier, in configuration order.

    With no notifiers configured a single no-op notifier is used so missed
    heartbeats are at least logged.

    Raises:
        ConfigurationError: If any notifier cannot be built
    """
    if not settings.notifiers:
        logger.warning("No notifiers configured, falling back to noop")
        return (NoOpNotifier(),)

    notifiers = []
    for index, notifier_settings in enumerate(settings.notifiers):
        name = f"{notifier_settings.type.value}[{index}]"
        try:
            notifier = build_notifier(
                notifier_settings,
                name=name,
                timeout=settings.http_timeout,
                client=client,
            )
        except ConfigurationError as e:
            raise ConfigurationError(f"failed to build notifier {name}: {e}") from e
        notifiers.append(notifier)

    logger.info("Notifiers built", notifiers=[n.name for n in notifiers])
    return tuple(notifiers)
