"""Health check endpoints for Docker/Kubernetes.

Use cases:
- Docker HEALTHCHECK: curl -f http://localhost:8000/health/live || exit 1
- K8s liveness check: /health/live
"""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from previewspot import __version__

router = APIRouter()


class LivenessStatus(BaseModel):
    """Simple liveness check response."""

    status: str = Field(description="alive or dead")
    timestamp: str = Field(description="ISO timestamp")
    version: str = Field(default=__version__, description="Application version")


# Process liveness only, no Spotify/Deezer calls. An upstream outage is not a reason
# to restart the container.
@router.get("/live", response_model=LivenessStatus)
async def liveness() -> LivenessStatus:
    """Liveness check for Kubernetes/Docker."""
    return LivenessStatus(status="alive", timestamp=datetime.now(UTC).isoformat())
