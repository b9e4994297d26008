"""System router - health checks."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from deadswitch import __version__


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint. Independent of heartbeat state."""
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
