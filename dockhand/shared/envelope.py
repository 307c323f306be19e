"""
Envelope builders for every outbound payload.

Two canonical shapes leave this service:

- ``ResponseEnvelope`` for request/response HTTP calls:
  ``{"success": bool, "message": str, "data": T | {"code": CLASSIFIER}}``
- ``StreamEnvelope`` for push-style WebSocket frames:
  ``{"type": str, "hostname": str, "timestamp": ISO-8601, "data": T}``

Builders are pure. A failure envelope never carries a message inside
``data`` and never carries internal detail; its code is always supplied
by the failure router.
"""

from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, field_serializer

from dockhand.shared.errors.taxonomy import ClassifiedFailure, StatusClassifier

DataT = TypeVar("DataT")


class ErrorPayload(BaseModel):
    """Data of a failure envelope. Carries the classifier only."""

    model_config = ConfigDict(frozen=True)

    code: StatusClassifier

    @field_serializer("code")
    def _serialize_code(self, code: StatusClassifier) -> str:
        return code.name


class ResponseEnvelope(BaseModel, Generic[DataT]):
    """Canonical HTTP response body.

    Attributes:
        success: True iff ``data`` holds domain data.
        message: Human-readable outcome, also used for failures.
        data: Domain data on success, ``ErrorPayload`` on failure.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    data: Optional[DataT] = None

    def to_json(self) -> str:
        return self.model_dump_json()


class StreamEnvelope(BaseModel):
    """Canonical WebSocket frame. Only ever emitted on success."""

    model_config = ConfigDict(frozen=True)

    type: str
    hostname: str
    timestamp: str
    data: Any = None

    def to_json(self) -> str:
        return self.model_dump_json()


def build_response_envelope(
    success: bool,
    message: str,
    data: Any = None,
    code: StatusClassifier | None = None,
) -> ResponseEnvelope:
    """Build a response envelope.

    Args:
        success: Outcome of the call.
        message: Message shown to the client.
        data: Domain data. Must be omitted when ``success`` is False.
        code: Classifier of a failure. Only the failure router passes it.

    Returns:
        An immutable ``ResponseEnvelope``.

    Raises:
        ValueError: If the success flag, data and code disagree.
    """
    if success:
        if code is not None:
            raise ValueError("A success envelope cannot carry a failure code")
        return ResponseEnvelope(success=True, message=message, data=data)

    if data is not None:
        raise ValueError("A failure envelope cannot carry domain data")
    if code is None:
        raise ValueError("A failure envelope requires a classifier code")
    return ResponseEnvelope(
        success=False, message=message, data=ErrorPayload(code=code)
    )


def build_error_envelope(failure: ClassifiedFailure) -> ResponseEnvelope:
    """Build the failure envelope for an already classified failure."""
    return build_response_envelope(
        False, failure.message, code=failure.classifier
    )


def build_stream_envelope(
    stream_type: str, hostname: str, data: Any
) -> StreamEnvelope:
    """Wrap one stream emission, stamping the current UTC time."""
    return StreamEnvelope(
        type=stream_type,
        hostname=hostname,
        timestamp=datetime.now(timezone.utc).isoformat(),
        data=data,
    )
