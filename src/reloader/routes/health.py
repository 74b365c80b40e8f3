"""Health and script endpoints of the reloader's own app."""
from typing import Literal

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when the server is running.
        connections: Number of open browser connections.
        watching: Paths currently being watched.
    """

    status: Literal["alive"]
    connections: int
    watching: list[str]


@router.get("/health/live", response_model=LivenessResponse)
async def liveness(request: Request) -> LivenessResponse:
    """Liveness probe endpoint.

    Returns:
        Liveness status with connection and watch counts.
    """
    state = request.app.state
    return LivenessResponse(
        status="alive",
        connections=len(state.registry),
        watching=list(state.watched_paths()),
    )


@router.get("/livereload.js")
async def reload_script(request: Request) -> Response:
    """Serve the client script for hosts that prefer a ``<script src>`` tag.

    Returns:
        The script source without its ``<script>`` wrapper.
    """
    return Response(
        content=request.app.state.reload_source(),
        media_type="application/javascript",
        headers={"Cache-Control": "no-cache"},
    )
