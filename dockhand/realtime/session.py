"""
Stream session manager.

Owns every push-style connection from accept to teardown, under two
delivery modes:

- **periodic**: an APScheduler interval job invokes the producer;
- **event-driven**: an ``EventSource`` subscription queues events and a
  single drain task invokes the producer once per event.

Each successful producer result is wrapped in a ``StreamEnvelope`` and
written to the session's transport. Failures never reach the caller:
they drive the session to teardown.

Lifecycle::

    OPEN ──(emission)──▶ OPEN
      │
      │ producer failure | transport failure | peer close
      │ | cancel | shutdown
      ▼
    CLOSING ──▶ CLOSED

Teardown runs once per session, in order: stop scheduling / unsubscribe,
close the transport (best-effort), mark closed. Every trigger after the
first is a no-op.
"""

import asyncio
import functools
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dockhand.realtime.events import EventSource, Subscription
from dockhand.realtime.transport import (
    WS_CLOSE_GOING_AWAY,
    WS_CLOSE_NORMAL,
    Transport,
)
from dockhand.shared.envelope import build_stream_envelope
from dockhand.shared.errors.router import FailureRouter, SocketDelivery

logger = logging.getLogger(__name__)

Producer = Callable[..., Any]


class DeliveryMode(str, Enum):
    PERIODIC = "periodic"
    EVENT_DRIVEN = "event_driven"


class SessionState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class CloseReason(str, Enum):
    PRODUCER_FAILED = "producer_failed"
    TRANSPORT_FAILED = "transport_failed"
    PEER_CLOSED = "peer_closed"
    CANCELLED = "cancelled"
    SHUTDOWN = "shutdown"


@dataclass(eq=False)
class StreamSession:
    """State of one push-style connection.

    Mutated only by the ``StreamSessionManager`` that created it.
    ``cancel`` stops the session's timer or subscription.
    """

    session_id: str
    transport: Transport
    mode: DeliveryMode
    stream_type: str
    producer: Producer
    state: SessionState = SessionState.OPEN
    close_reason: CloseReason | None = None
    emitted: int = 0
    in_flight: bool = False
    cancel: Callable[[], None] | None = None
    opened_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    closed: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def describe(self) -> dict:
        return {
            "session_id": self.session_id,
            "mode": self.mode.value,
            "type": self.stream_type,
            "state": self.state.value,
            "emitted": self.emitted,
            "opened_at": self.opened_at,
        }


class StreamSessionManager:
    """Opens, drives and tears down stream sessions.

    Args:
        router: Failure router used to turn producer failures into a
            socket close.
        scheduler: Running ``AsyncIOScheduler`` hosting periodic jobs.
        hostname: Stamped on every stream envelope.
        queue_size: Pending events buffered per event-driven session.

    Usage in FastAPI:
        transport = WebSocketTransport(websocket)
        await transport.accept()
        session = manager.open_periodic(transport, "cpu", read_cpu, 2.0)
        await manager.serve(session)
    """

    def __init__(
        self,
        router: FailureRouter,
        scheduler: AsyncIOScheduler,
        hostname: str,
        queue_size: int = 100,
    ) -> None:
        self._router = router
        self._scheduler = scheduler
        self._hostname = hostname
        self._queue_size = queue_size
        self._sessions: dict[str, StreamSession] = {}
        self._drain_tasks: set[asyncio.Task] = set()
        self._stats = {
            "total_sessions": 0,
            "total_emissions": 0,
            "producer_failures": 0,
            "skipped_ticks": 0,
            "dropped_events": 0,
        }

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    @property
    def stats(self) -> dict:
        return {**self._stats, "active_sessions": self.active_sessions}

    def get_session(self, session_id: str) -> StreamSession | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[dict]:
        return [session.describe() for session in self._sessions.values()]

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def _register(
        self,
        transport: Transport,
        mode: DeliveryMode,
        stream_type: str,
        producer: Producer,
    ) -> StreamSession:
        session = StreamSession(
            session_id=uuid.uuid4().hex,
            transport=transport,
            mode=mode,
            stream_type=stream_type,
            producer=producer,
        )
        self._sessions[session.session_id] = session
        self._stats["total_sessions"] += 1
        logger.info(
            "Stream session %s opened (%s, type=%s). Active: %d",
            session.session_id,
            mode.value,
            stream_type,
            self.active_sessions,
        )
        return session

    def open_periodic(
        self,
        transport: Transport,
        stream_type: str,
        producer: Producer,
        interval: float,
    ) -> StreamSession:
        """Open a session emitting ``producer()`` every ``interval`` seconds.

        The first emission is scheduled immediately. A tick that fires
        while the previous producer call is still pending is skipped.
        """
        session = self._register(
            transport, DeliveryMode.PERIODIC, stream_type, producer
        )
        job = self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=interval),
            args=[session],
            id=session.session_id,
            name=f"stream:{stream_type}",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        session.cancel = functools.partial(self._remove_job, job.id)
        return session

    def open_event_driven(
        self,
        transport: Transport,
        stream_type: str,
        producer: Producer,
        source: EventSource,
        topic: str | None = None,
    ) -> StreamSession:
        """Open a session emitting ``producer(event)`` for each event.

        Events are delivered in arrival order, one producer call at a time.
        Must be called from a running event loop.
        """
        session = self._register(
            transport, DeliveryMode.EVENT_DRIVEN, stream_type, producer
        )
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)

        def on_event(event: Any) -> bool:
            if not session.is_open:
                return False
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self._stats["dropped_events"] += 1
                logger.warning(
                    "Session %s queue full, dropping event", session.session_id
                )
                return False
            return True

        subscription = source.subscribe(topic or stream_type, on_event)
        task = asyncio.get_running_loop().create_task(
            self._drain(session, queue), name=f"stream-drain-{session.session_id}"
        )
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)
        session.cancel = functools.partial(self._stop_events, subscription, task)
        return session

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    async def tick(self, session: StreamSession) -> bool:
        """Run one periodic emission.

        Returns:
            True if an envelope was written.
        """
        if not session.is_open:
            return False
        if session.in_flight:
            self._stats["skipped_ticks"] += 1
            logger.debug("Session %s tick skipped, producer busy", session.session_id)
            return False
        return await self._emit(session, session.producer)

    async def _drain(self, session: StreamSession, queue: asyncio.Queue) -> None:
        while session.is_open:
            event = await queue.get()
            if not session.is_open:
                break
            await self._emit(session, functools.partial(session.producer, event))

    async def _emit(self, session: StreamSession, call: Callable[[], Any]) -> bool:
        session.in_flight = True
        try:
            try:
                result = call()
                if inspect.isawaitable(result):
                    result = await result
                if not session.is_open:
                    return False
                frame = build_stream_envelope(
                    session.stream_type, self._hostname, result
                ).to_json()
            except Exception as exc:
                self._stats["producer_failures"] += 1
                await self._fail(session, exc)
                return False

            try:
                await session.transport.write(frame)
            except Exception:
                logger.warning(
                    "Write failed for session %s", session.session_id, exc_info=True
                )
                await self.close(session, CloseReason.TRANSPORT_FAILED)
                return False

            session.emitted += 1
            self._stats["total_emissions"] += 1
            return True
        finally:
            session.in_flight = False

    async def _fail(self, session: StreamSession, exc: Exception) -> None:
        if not session.is_open:
            return

        def close(code: int, reason: str):
            return self.close(session, CloseReason.PRODUCER_FAILED, code, reason)

        await self._router.handle(
            exc, SocketDelivery(close), context=f"stream {session.session_id}"
        )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("Job %s already removed", job_id)

    @staticmethod
    def _stop_events(subscription: Subscription, task: asyncio.Task) -> None:
        subscription.unsubscribe()
        # The drain task exits by itself when it is the one closing.
        if task is not asyncio.current_task():
            task.cancel()

    async def close(
        self,
        session: StreamSession,
        reason: CloseReason,
        code: int = WS_CLOSE_NORMAL,
        message: str = "",
    ) -> bool:
        """Tear a session down once.

        Returns:
            True if this call performed the teardown, False if the session
            was already closing or closed.
        """
        if not session.is_open:
            logger.debug(
                "Session %s already %s, ignoring %s",
                session.session_id,
                session.state.value,
                reason.value,
            )
            return False

        session.state = SessionState.CLOSING
        session.close_reason = reason

        if session.cancel is not None:
            session.cancel()

        try:
            await session.transport.close(code, message)
        except Exception:
            logger.warning(
                "Transport close failed for session %s",
                session.session_id,
                exc_info=True,
            )

        session.state = SessionState.CLOSED
        session.closed.set()
        self._sessions.pop(session.session_id, None)
        logger.info(
            "Stream session %s closed (%s) after %d emissions. Active: %d",
            session.session_id,
            reason.value,
            session.emitted,
            self.active_sessions,
        )
        return True

    async def cancel(self, session_id: str) -> bool:
        """Close a session on request. Unknown ids return False."""
        session = self._sessions.get(session_id)
        if session is None:
            return False
        return await self.close(session, CloseReason.CANCELLED)

    async def shutdown(self) -> None:
        """Close every open session. Called on application shutdown."""
        sessions = list(self._sessions.values())
        for session in sessions:
            await self.close(session, CloseReason.SHUTDOWN, WS_CLOSE_GOING_AWAY)
        if sessions:
            logger.info("Closed %d stream sessions on shutdown", len(sessions))

        drains = [t for t in self._drain_tasks if t is not asyncio.current_task()]
        if drains:
            await asyncio.gather(*drains, return_exceptions=True)

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------

    async def serve(self, session: StreamSession) -> CloseReason | None:
        """Hold the connection until the peer leaves or the session closes.

        Whichever happens first, the session is torn down before return.
        """
        peer = asyncio.ensure_future(session.transport.wait_closed())
        closed = asyncio.ensure_future(session.closed.wait())
        try:
            done, _ = await asyncio.wait(
                {peer, closed}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await self.close(session, CloseReason.CANCELLED, WS_CLOSE_GOING_AWAY)
            raise
        finally:
            for task in (peer, closed):
                if not task.done():
                    task.cancel()

        if peer in done:
            error = peer.exception()
            if error is None:
                await self.close(session, CloseReason.PEER_CLOSED)
            else:
                logger.warning(
                    "Transport failed for session %s: %s",
                    session.session_id,
                    type(error).__name__,
                )
                await self.close(session, CloseReason.TRANSPORT_FAILED)

        # Another trigger may still be closing the transport.
        await session.closed.wait()
        return session.close_reason
