"""API Routers."""

from .system import router as system_router
from .ping import router as ping_router

__all__ = [
    "system_router",
    "ping_router",
]
