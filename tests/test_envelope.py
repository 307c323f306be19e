"""
Tests for the envelope builders.
"""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from dockhand.shared.envelope import (
    ErrorPayload,
    build_error_envelope,
    build_response_envelope,
    build_stream_envelope,
)
from dockhand.shared.errors.taxonomy import ClassifiedFailure, StatusClassifier


class TestResponseEnvelope:
    """Tests for build_response_envelope."""

    def test_success_envelope_carries_data(self) -> None:
        envelope = build_response_envelope(True, "ok", {"containers": 3})
        assert envelope.success is True
        assert envelope.message == "ok"
        assert envelope.data == {"containers": 3}

    def test_success_envelope_without_data(self) -> None:
        envelope = build_response_envelope(True, "deleted")
        assert envelope.model_dump(mode="json") == {
            "success": True,
            "message": "deleted",
            "data": None,
        }

    def test_failure_envelope_wraps_code(self) -> None:
        envelope = build_response_envelope(
            False, "missing", code=StatusClassifier.NOT_FOUND
        )
        assert envelope.success is False
        assert isinstance(envelope.data, ErrorPayload)
        assert envelope.data.code is StatusClassifier.NOT_FOUND

    def test_failure_envelope_serializes_code_by_name(self) -> None:
        envelope = build_response_envelope(
            False, "missing", code=StatusClassifier.NOT_FOUND
        )
        assert json.loads(envelope.to_json()) == {
            "success": False,
            "message": "missing",
            "data": {"code": "NOT_FOUND"},
        }

    def test_failure_without_code_is_rejected(self) -> None:
        """The builder never invents a classifier."""
        with pytest.raises(ValueError):
            build_response_envelope(False, "oops")

    def test_failure_with_data_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_response_envelope(
                False, "oops", {"x": 1}, code=StatusClassifier.CONFLICT
            )

    def test_success_with_code_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_response_envelope(True, "ok", code=StatusClassifier.CONFLICT)

    def test_envelope_is_immutable(self) -> None:
        envelope = build_response_envelope(True, "ok", {"a": 1})
        with pytest.raises(ValidationError):
            envelope.message = "changed"

    def test_error_envelope_from_classified_failure(self) -> None:
        failure = ClassifiedFailure(StatusClassifier.FORBIDDEN, "not yours")
        body = build_error_envelope(failure).model_dump(mode="json")
        assert body == {
            "success": False,
            "message": "not yours",
            "data": {"code": "FORBIDDEN"},
        }


class TestStreamEnvelope:
    """Tests for build_stream_envelope."""

    def test_shape(self) -> None:
        envelope = build_stream_envelope("cpu", "node-1", {"cpu": 42})
        parsed = json.loads(envelope.to_json())
        assert set(parsed) == {"type", "hostname", "timestamp", "data"}
        assert parsed["type"] == "cpu"
        assert parsed["hostname"] == "node-1"
        assert parsed["data"] == {"cpu": 42}

    def test_timestamp_is_utc_iso8601_at_emission(self) -> None:
        before = datetime.now(timezone.utc)
        envelope = build_stream_envelope("memory", "node-1", {})
        after = datetime.now(timezone.utc)

        stamped = datetime.fromisoformat(envelope.timestamp)
        assert stamped.tzinfo is not None
        assert before <= stamped <= after
