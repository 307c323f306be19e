"""
FastAPI router for the system bounded context.

All routes delegate to the metrics port. No business logic here.
Failures are routed by the envelope route class.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from dockhand.domain.system.ports import SystemMetricsPort
from dockhand.interfaces.dependencies import get_metrics_port
from dockhand.interfaces.schemas import MetricData, SystemInfoData
from dockhand.shared.dispatch import EnvelopeRoute
from dockhand.shared.envelope import ResponseEnvelope, build_response_envelope

router = APIRouter(prefix="/system", tags=["system"], route_class=EnvelopeRoute)

MetricsPort = Annotated[SystemMetricsPort, Depends(get_metrics_port)]


@router.get(
    "/info",
    response_model=ResponseEnvelope[SystemInfoData],
    summary="Host information",
    description="Hostname, platform, uptime, CPU cores and memory size.",
)
def system_info(metrics: MetricsPort) -> ResponseEnvelope:
    return build_response_envelope(
        True, "System info retrieved", metrics.get_system_info()
    )


@router.get(
    "/metrics/{kind}",
    response_model=ResponseEnvelope[MetricData],
    summary="Sample one metric",
    description="One sample of cpu, memory, swap, disk, network or load.",
)
def system_metric(kind: str, metrics: MetricsPort) -> ResponseEnvelope:
    """Return a single metric sample. Unknown kinds answer 404."""
    return build_response_envelope(
        True, f"Metric {kind} sampled", metrics.get_metric(kind)
    )
