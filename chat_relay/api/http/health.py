"""Health check endpoint for monitoring service status."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from chat_relay.hub import RelayHub

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    participants: int
    connections: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(request: Request) -> HealthResponse:
    """
    Report that the relay is serving and how busy it is.

    The relay has no external dependencies, so it is healthy whenever it
    can answer.

    Returns:
        HealthResponse: Registered participants and open connections.
    """
    hub: RelayHub = request.app.state.relay
    return HealthResponse(
        status="healthy",
        participants=len(hub.registry),
        connections=len(hub.connections),
    )
