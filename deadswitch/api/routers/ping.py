"""Ping router - records heartbeats."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from deadswitch.exceptions import RegistryClosedError
from deadswitch.heartbeat import HeartbeatMonitor

logger = structlog.get_logger(__name__)

router = APIRouter()


class PingResponse(BaseModel):
    """Ping acknowledgement."""

    status: str
    key: str


def get_monitor(request: Request) -> HeartbeatMonitor:
    """Get the heartbeat monitor attached to the application."""
    return request.app.state.monitor


@router.post("/ping/{key}", response_model=PingResponse)
async def ping(
    key: str,
    monitor: Annotated[HeartbeatMonitor, Depends(get_monitor)],
) -> PingResponse:
    """Record a heartbeat, extending the key's deadline by the timeout."""
    try:
        monitor.record_ping(key)
    except RegistryClosedError as e:
        logger.warning("Ping rejected", key=key, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e

    return PingResponse(status="ok", key=key)
