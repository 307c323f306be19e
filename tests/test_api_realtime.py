"""
Tests for the real-time API: WebSocket streams and their HTTP controls.

Each test runs the app lifespan (``with TestClient(app)``) so that the
scheduler and stream session manager exist.
"""

import time
from datetime import datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from dockhand.core.config import settings
from dockhand.domain.system.ports import SystemMetricsPort
from dockhand.interfaces.dependencies import get_metrics_port
from dockhand.main import create_app


class FixedCpu(SystemMetricsPort):
    def get_system_info(self) -> dict[str, Any]:
        return {}

    def get_metric(self, kind: str) -> dict[str, Any]:
        self.ensure_supported(kind)
        return {"cpu": 42}


class FailingCpu(FixedCpu):
    def get_metric(self, kind: str) -> dict[str, Any]:
        raise RuntimeError("sensor read failed")


def build_app(metrics=FixedCpu):
    app = create_app()
    app.dependency_overrides[get_metrics_port] = metrics
    return app


def wait_for_sessions(client: TestClient, count: int) -> dict:
    for _ in range(200):
        data = client.get("/api/v1/realtime/stream/status").json()["data"]
        if data["active_sessions"] == count:
            return data
        time.sleep(0.01)
    raise AssertionError(f"expected {count} active sessions")


class TestMetricStream:
    """Tests for WS /api/v1/realtime/ws/metrics/{kind}."""

    def test_periodic_frames(self) -> None:
        with TestClient(build_app()) as client:
            with client.websocket_connect(
                "/api/v1/realtime/ws/metrics/cpu?interval=0.1"
            ) as ws:
                first = ws.receive_json()
                second = ws.receive_json()

        for frame in (first, second):
            assert set(frame) == {"type", "hostname", "timestamp", "data"}
            assert frame["type"] == "cpu"
            assert frame["hostname"] == settings.hostname
            assert frame["data"] == {"cpu": 42}
            datetime.fromisoformat(frame["timestamp"])

    def test_invalid_interval_closes_with_policy_violation(self) -> None:
        with TestClient(build_app()) as client:
            with client.websocket_connect(
                "/api/v1/realtime/ws/metrics/cpu?interval=fast"
            ) as ws:
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    ws.receive_json()

        assert excinfo.value.code == 1008
        assert excinfo.value.reason == "Invalid interval: fast"

    def test_out_of_range_interval(self) -> None:
        with TestClient(build_app()) as client:
            with client.websocket_connect(
                "/api/v1/realtime/ws/metrics/cpu?interval=0.001"
            ) as ws:
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    ws.receive_json()

        assert excinfo.value.code == 1008

    def test_unknown_kind_closes(self) -> None:
        with TestClient(build_app()) as client:
            with client.websocket_connect("/api/v1/realtime/ws/metrics/gpu") as ws:
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    ws.receive_json()

        assert excinfo.value.code == 1008
        assert excinfo.value.reason == "Unknown metric kind: gpu"

    def test_producer_failure_closes_without_frame(self) -> None:
        with TestClient(build_app(FailingCpu)) as client:
            with client.websocket_connect(
                "/api/v1/realtime/ws/metrics/cpu?interval=0.1"
            ) as ws:
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    ws.receive_json()

            status = client.get("/api/v1/realtime/stream/status").json()["data"]

        assert excinfo.value.code == 1011
        assert "sensor" not in excinfo.value.reason
        assert status["producer_failures"] == 1
        assert status["active_sessions"] == 0

    def test_stream_unavailable_without_lifespan(self) -> None:
        client = TestClient(build_app())
        with client.websocket_connect("/api/v1/realtime/ws/metrics/cpu") as ws:
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_json()

        assert excinfo.value.code == 1013


class TestEventStream:
    """Tests for WS /api/v1/realtime/ws/events/{topic} and publishing."""

    def test_published_event_is_streamed(self) -> None:
        with TestClient(build_app()) as client:
            with client.websocket_connect("/api/v1/realtime/ws/events/deploys") as ws:
                wait_for_sessions(client, 1)
                response = client.post(
                    "/api/v1/realtime/events/deploys", json={"status": "done"}
                )
                frame = ws.receive_json()

        assert response.status_code == 202
        assert response.json() == {
            "success": True,
            "message": "Event published to deploys",
            "data": {"topic": "deploys", "delivered": 1},
        }
        assert frame["type"] == "deploys"
        assert frame["data"] == {"status": "done"}

    def test_publish_without_subscribers(self) -> None:
        with TestClient(build_app()) as client:
            response = client.post("/api/v1/realtime/events/nobody", json={"a": 1})

        assert response.status_code == 202
        assert response.json()["data"]["delivered"] == 0

    def test_publish_rejects_non_object_body(self) -> None:
        with TestClient(build_app()) as client:
            response = client.post("/api/v1/realtime/events/deploys", json=[1, 2])

        assert response.status_code == 400
        assert response.json()["data"] == {"code": "BAD_REQUEST"}


class TestSessionControl:
    """Tests for stream status and explicit cancellation."""

    def test_status_without_lifespan_is_unavailable(self) -> None:
        response = TestClient(build_app()).get("/api/v1/realtime/stream/status")
        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "message": "Streaming is not available",
            "data": {"code": "SERVICE_UNAVAILABLE"},
        }

    def test_cancel_closes_socket(self) -> None:
        with TestClient(build_app()) as client:
            with client.websocket_connect("/api/v1/realtime/ws/events/builds") as ws:
                status = wait_for_sessions(client, 1)
                session_id = status["sessions"][0]["session_id"]
                assert status["sessions"][0]["mode"] == "event_driven"
                assert status["topics"] == {"builds": 1}

                response = client.delete(f"/api/v1/realtime/sessions/{session_id}")
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    ws.receive_json()

            again = client.delete(f"/api/v1/realtime/sessions/{session_id}")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "session_id": session_id,
            "cancelled": True,
            "close_reason": "cancelled",
        }
        assert excinfo.value.code == 1000
        assert again.status_code == 404
        assert again.json()["data"] == {"code": "NOT_FOUND"}
