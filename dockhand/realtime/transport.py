"""
Transports owned by stream sessions.

A transport exposes three things to the session manager: a text write,
a close, and a notification that resolves when the peer goes away.
Nothing but the owning session ever writes to a transport.
"""

import logging
from typing import Protocol

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)

WS_CLOSE_NORMAL = 1000
WS_CLOSE_GOING_AWAY = 1001


class Transport(Protocol):
    """Push channel to one client."""

    async def write(self, text: str) -> None: ...

    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None: ...

    async def wait_closed(self) -> None: ...


class WebSocketTransport:
    """Binds the ``Transport`` contract to a Starlette WebSocket.

    Incoming client messages are read and discarded; reading is what
    surfaces the peer's disconnect.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return (
            self._closed
            or self._websocket.client_state == WebSocketState.DISCONNECTED
            or self._websocket.application_state == WebSocketState.DISCONNECTED
        )

    async def accept(self) -> None:
        await self._websocket.accept()

    async def write(self, text: str) -> None:
        await self._websocket.send_text(text)

    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        """Close the socket once. Later calls and peer-closed sockets are no-ops."""
        if self.is_closed:
            self._closed = True
            return
        self._closed = True
        await self._websocket.close(code=code, reason=reason)

    async def wait_closed(self) -> None:
        """Return when the peer disconnects."""
        while True:
            message = await self._websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(
                    "Peer closed WebSocket with code %s", message.get("code")
                )
                return
