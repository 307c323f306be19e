"""
FastAPI router for real-time streaming.

Provides:
- WebSocket endpoint streaming host metrics periodically
- WebSocket endpoint streaming published events
- Event publishing, session cancellation and stream status endpoints

Every pushed frame is a StreamEnvelope. Failures close the socket;
no failure frame is ever sent.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, WebSocket

from dockhand.core.config import settings
from dockhand.domain.system.ports import SystemMetricsPort
from dockhand.interfaces.dependencies import (
    get_event_hub,
    get_failure_router,
    get_metrics_port,
    get_session_manager,
)
from dockhand.interfaces.schemas import (
    CancelSessionData,
    PublishEventData,
    StreamStatusData,
)
from dockhand.realtime.events import EventHub
from dockhand.realtime.session import StreamSessionManager
from dockhand.realtime.transport import WebSocketTransport
from dockhand.shared.dispatch import EnvelopeRoute
from dockhand.shared.envelope import ResponseEnvelope, build_response_envelope
from dockhand.shared.errors.router import SocketDelivery
from dockhand.shared.errors.taxonomy import BadRequestError, NotFoundError

router = APIRouter(prefix="/realtime", tags=["realtime"], route_class=EnvelopeRoute)

SessionManager = Annotated[StreamSessionManager, Depends(get_session_manager)]
Hub = Annotated[EventHub, Depends(get_event_hub)]


def resolve_interval(raw: str | None) -> float:
    """Parse the ``interval`` query parameter.

    Raises:
        BadRequestError: If it is not a number within the configured bounds.
    """
    if raw is None:
        return settings.stream_default_interval_seconds
    try:
        value = float(raw)
    except ValueError:
        raise BadRequestError(f"Invalid interval: {raw}") from None

    low = settings.stream_min_interval_seconds
    high = settings.stream_max_interval_seconds
    if not low <= value <= high:
        raise BadRequestError(f"Interval must be between {low} and {high} seconds")
    return value


def passthrough(event: Any) -> Any:
    """Producer for event streams: the published payload is the data."""
    return event


async def _reject(
    websocket: WebSocket, transport: WebSocketTransport, exc: Exception
) -> None:
    await get_failure_router(websocket).handle(
        exc, SocketDelivery(transport.close), context=websocket.url.path
    )


# ------------------------------------------------------------------
# WebSocket endpoints
# ------------------------------------------------------------------


@router.websocket("/ws/metrics/{kind}")
async def ws_metrics(
    websocket: WebSocket,
    kind: str,
    metrics: Annotated[SystemMetricsPort, Depends(get_metrics_port)],
    interval: str | None = None,
) -> None:
    """Periodic metric stream.

    Protocol (JSON):
        ← {"type": "cpu", "hostname": "...", "timestamp": "...", "data": {...}}

    An invalid interval or unknown kind closes the socket with 1008.
    """
    transport = WebSocketTransport(websocket)
    await transport.accept()
    try:
        period = resolve_interval(interval)
        metrics.ensure_supported(kind)
        manager = get_session_manager(websocket)
    except Exception as exc:
        await _reject(websocket, transport, exc)
        return

    session = manager.open_periodic(
        transport, kind, lambda: metrics.get_metric(kind), period
    )
    await manager.serve(session)


@router.websocket("/ws/events/{topic}")
async def ws_events(websocket: WebSocket, topic: str) -> None:
    """Event-driven stream of everything published on ``topic``.

    Protocol (JSON):
        ← {"type": "<topic>", "hostname": "...", "timestamp": "...",
           "data": <payload>}
    """
    transport = WebSocketTransport(websocket)
    await transport.accept()
    try:
        manager = get_session_manager(websocket)
    except Exception as exc:
        await _reject(websocket, transport, exc)
        return

    session = manager.open_event_driven(
        transport, topic, passthrough, get_event_hub(websocket), topic
    )
    await manager.serve(session)


# ------------------------------------------------------------------
# HTTP endpoints
# ------------------------------------------------------------------


@router.post(
    "/events/{topic}",
    response_model=ResponseEnvelope[PublishEventData],
    status_code=202,
    summary="Publish an event",
    description="Push a JSON payload to every session streaming the topic.",
)
async def publish_event(
    topic: str, payload: Annotated[dict[str, Any], Body()], hub: Hub
) -> ResponseEnvelope:
    # Must run on the event loop: subscribers enqueue onto asyncio queues.
    delivered = hub.publish(topic, payload)
    return build_response_envelope(
        True,
        f"Event published to {topic}",
        PublishEventData(topic=topic, delivered=delivered),
    )


@router.delete(
    "/sessions/{session_id}",
    response_model=ResponseEnvelope[CancelSessionData],
    summary="Cancel a stream session",
)
async def cancel_session(session_id: str, manager: SessionManager) -> ResponseEnvelope:
    session = manager.get_session(session_id)
    if session is None:
        raise NotFoundError(f"Stream session not found: {session_id}")
    cancelled = await manager.cancel(session_id)
    return build_response_envelope(
        True,
        "Stream session cancelled",
        CancelSessionData(
            session_id=session_id,
            cancelled=cancelled,
            close_reason=session.close_reason.value if session.close_reason else None,
        ),
    )


@router.get(
    "/stream/status",
    response_model=ResponseEnvelope[StreamStatusData],
    summary="Get stream status",
    description="Return stream session statistics and open sessions.",
)
async def stream_status(manager: SessionManager, hub: Hub) -> ResponseEnvelope:
    return build_response_envelope(
        True,
        "Stream status retrieved",
        StreamStatusData(
            **manager.stats,
            sessions=manager.list_sessions(),
            topics=hub.stats["topics"],
        ),
    )
