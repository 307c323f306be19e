"""
Dependency injection for the interface layer.

Provides FastAPI dependency functions that hand routers the components
built by the composition root (``app.state``) and the infrastructure
adapters behind domain ports.
"""

from functools import lru_cache

from starlette.requests import HTTPConnection

from dockhand.domain.system.ports import SystemMetricsPort
from dockhand.infrastructure.system.psutil_metrics_adapter import (
    PsutilMetricsAdapter,
)
from dockhand.realtime.events import EventHub
from dockhand.realtime.session import StreamSessionManager
from dockhand.shared.errors.router import FailureRouter
from dockhand.shared.errors.taxonomy import ServiceUnavailableError


@lru_cache(maxsize=1)
def get_metrics_port() -> SystemMetricsPort:
    """Build the host metrics adapter once per process."""
    return PsutilMetricsAdapter()


def get_failure_router(connection: HTTPConnection) -> FailureRouter:
    return connection.app.state.failure_router


def get_event_hub(connection: HTTPConnection) -> EventHub:
    return connection.app.state.event_hub


def get_session_manager(connection: HTTPConnection) -> StreamSessionManager:
    """Return the stream session manager started by the app lifespan.

    Raises:
        ServiceUnavailableError: If the lifespan has not started it.
    """
    manager = getattr(connection.app.state, "session_manager", None)
    if manager is None:
        raise ServiceUnavailableError("Streaming is not available")
    return manager
