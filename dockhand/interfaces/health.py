"""
Health check router.

Provides a simple health endpoint for liveness/readiness probes.
No business logic. Returns application status and version.
"""

from fastapi import APIRouter

from dockhand.core.config import settings
from dockhand.interfaces.schemas import HealthData
from dockhand.shared.dispatch import EnvelopeRoute
from dockhand.shared.envelope import ResponseEnvelope, build_response_envelope

router = APIRouter(tags=["health"], route_class=EnvelopeRoute)


@router.get(
    "/health",
    response_model=ResponseEnvelope[HealthData],
    summary="Health check",
    description="Returns application health status and version.",
)
def health_check() -> ResponseEnvelope:
    """Return current application health status."""
    return build_response_envelope(
        True, "Service is healthy", HealthData(status="ok", version=settings.version)
    )
