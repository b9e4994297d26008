"""DEADSWITCH API - FastAPI Application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from deadswitch import __version__
from deadswitch.api.routers import ping_router, system_router
from deadswitch.config import Settings, load_settings
from deadswitch.heartbeat import HeartbeatMonitor
from deadswitch.notifiers.factory import build_notifier_set


def create_app(
    settings: Settings | None = None,
    monitor: HeartbeatMonitor | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Service settings; loaded from the default sources when omitted
        monitor: Prebuilt heartbeat monitor; built from settings when omitted

    Raises:
        ConfigurationError: If the notifier set cannot be built
    """
    if monitor is None:
        settings = settings or load_settings()
        monitor = HeartbeatMonitor(
            build_notifier_set(settings),
            timeout=settings.timeout,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        await monitor.start()
        yield
        # Shutdown
        await monitor.stop()

    app = FastAPI(
        title="deadswitch",
        description="Dead man's switch heartbeat monitor",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.monitor = monitor

    app.include_router(system_router, tags=["System"])
    app.include_router(ping_router, tags=["Heartbeat"])

    return app
