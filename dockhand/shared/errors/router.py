"""
Failure router: the single chokepoint between a raised failure and the
wire.

``FailureRouter.handle`` normalizes any raised value, builds the failure
envelope and hands it to a transport-specific delivery exactly once.
The router holds no per-request or per-session state, so one instance is
shared by every request and stream of the application.
"""

import logging
from typing import Any, Callable, Protocol

from fastapi.responses import JSONResponse

from dockhand.shared.envelope import ResponseEnvelope, build_error_envelope
from dockhand.shared.errors.taxonomy import (
    StatusClassifier,
    UnclassifiedFailure,
    classify,
    normalize,
)

logger = logging.getLogger(__name__)

WS_CLOSE_POLICY_VIOLATION = 1008
WS_CLOSE_INTERNAL_ERROR = 1011
WS_CLOSE_TRY_AGAIN_LATER = 1013

# RFC 6455 limits the close reason to 123 bytes of UTF-8.
WS_CLOSE_REASON_MAX_BYTES = 123


class Delivery(Protocol):
    """Transport sink receiving the failure envelope."""

    def __call__(
        self, classifier: StatusClassifier, envelope: ResponseEnvelope
    ) -> Any: ...


class HttpDelivery:
    """Writes the failure envelope as an HTTP JSON response."""

    def __call__(
        self, classifier: StatusClassifier, envelope: ResponseEnvelope
    ) -> JSONResponse:
        return JSONResponse(
            status_code=classifier.http_status,
            content=envelope.model_dump(mode="json"),
        )


def websocket_close_code(classifier: StatusClassifier) -> int:
    """Pick the WebSocket close code for a classifier."""
    if classifier is StatusClassifier.SERVICE_UNAVAILABLE:
        return WS_CLOSE_TRY_AGAIN_LATER
    if classifier is StatusClassifier.INTERNAL_SERVER_ERROR:
        return WS_CLOSE_INTERNAL_ERROR
    return WS_CLOSE_POLICY_VIOLATION


def _truncate_reason(message: str) -> str:
    encoded = message.encode("utf-8")[:WS_CLOSE_REASON_MAX_BYTES]
    return encoded.decode("utf-8", errors="ignore")


class SocketDelivery:
    """Closes a socket instead of sending a failure frame.

    Args:
        close: Callable taking ``(code, reason)``. Its return value (often
            a coroutine) is handed back to the router's caller.
    """

    def __init__(self, close: Callable[[int, str], Any]) -> None:
        self._close = close

    def __call__(
        self, classifier: StatusClassifier, envelope: ResponseEnvelope
    ) -> Any:
        return self._close(
            websocket_close_code(classifier), _truncate_reason(envelope.message)
        )


class FailureRouter:
    """Maps any failure to an envelope and delivers it once."""

    def handle(
        self, failure: object, deliver: Delivery, context: str = "request"
    ) -> Any:
        """Route one failure.

        Args:
            failure: Anything raised, classified or not.
            deliver: Transport sink, called exactly once.
            context: Short label for logs (route path, session id).

        Returns:
            Whatever ``deliver`` returned.
        """
        classified = normalize(failure)
        tagged = classify(failure)

        if isinstance(tagged, UnclassifiedFailure):
            original = tagged.original
            logger.error(
                "Unclassified failure in %s: %s",
                context,
                type(original).__name__,
                exc_info=original if isinstance(original, BaseException) else None,
            )
        elif classified.classifier >= StatusClassifier.INTERNAL_SERVER_ERROR:
            logger.error(
                "%s in %s: %s",
                classified.classifier.name,
                context,
                classified.message,
            )
        else:
            logger.warning(
                "%s in %s: %s",
                classified.classifier.name,
                context,
                classified.message,
            )

        return deliver(classified.classifier, build_error_envelope(classified))
