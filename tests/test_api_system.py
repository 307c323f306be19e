"""
Tests for the system API endpoints.

Tests FastAPI routes with a fake metrics port.
Validates success envelopes and failure mapping.
"""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from dockhand.domain.system.ports import SystemMetricsPort
from dockhand.interfaces.dependencies import get_metrics_port
from dockhand.main import create_app


class FakeMetrics(SystemMetricsPort):
    """Metrics port returning fixed samples."""

    def get_system_info(self) -> dict[str, Any]:
        return {
            "hostname": "node-1",
            "platform": "Linux",
            "python": "3.12.0",
            "uptime_seconds": 3600,
            "cpu": {"logical": 8, "physical": 4},
            "memory": {"total": 16, "available": 8},
        }

    def get_metric(self, kind: str) -> dict[str, Any]:
        self.ensure_supported(kind)
        return {"kind": kind, "value": 42}


class BrokenMetrics(FakeMetrics):
    def get_system_info(self) -> dict[str, Any]:
        raise OSError("/proc is not mounted")


@pytest.fixture
def client() -> TestClient:
    app = create_app()
    app.dependency_overrides[get_metrics_port] = FakeMetrics
    return TestClient(app)


class TestSystemInfoEndpoint:
    """Tests for GET /api/v1/system/info."""

    def test_returns_envelope(self, client: TestClient) -> None:
        response = client.get("/api/v1/system/info")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "System info retrieved"
        assert body["data"]["hostname"] == "node-1"
        assert body["data"]["cpu"] == {"logical": 8, "physical": 4}

    def test_infrastructure_failure_is_internal(self) -> None:
        app = create_app()
        app.dependency_overrides[get_metrics_port] = BrokenMetrics
        response = TestClient(app).get("/api/v1/system/info")

        assert response.status_code == 500
        assert "/proc" not in response.text
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "data": {"code": "INTERNAL_SERVER_ERROR"},
        }


class TestMetricEndpoint:
    """Tests for GET /api/v1/system/metrics/{kind}."""

    def test_known_kind(self, client: TestClient) -> None:
        response = client.get("/api/v1/system/metrics/cpu")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Metric cpu sampled",
            "data": {"kind": "cpu", "value": 42},
        }

    def test_unknown_kind_is_not_found(self, client: TestClient) -> None:
        response = client.get("/api/v1/system/metrics/gpu")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "message": "Unknown metric kind: gpu",
            "data": {"code": "NOT_FOUND"},
        }


class TestPsutilAdapter:
    """Smoke tests for the real psutil adapter."""

    def test_every_kind_samples(self) -> None:
        from dockhand.domain.system.ports import METRIC_KINDS
        from dockhand.infrastructure.system.psutil_metrics_adapter import (
            PsutilMetricsAdapter,
        )

        adapter = PsutilMetricsAdapter()
        for kind in METRIC_KINDS:
            assert isinstance(adapter.get_metric(kind), dict)

    def test_system_info_keys(self) -> None:
        from dockhand.infrastructure.system.psutil_metrics_adapter import (
            PsutilMetricsAdapter,
        )

        info = PsutilMetricsAdapter().get_system_info()
        assert {"hostname", "platform", "uptime_seconds", "cpu", "memory"} <= set(info)
