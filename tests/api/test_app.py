"""Integration tests for the FastAPI routes.

Uses TestClient with a mocked record store and producers, no real services needed.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.service import MonitorService
from src.core.errors import StorageUnavailable
from src.storage.models import RecordStatistics, RequestType

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def parts():
    store = MagicMock()
    scheduler = MagicMock()
    analyzer = MagicMock()
    service = MonitorService(store, scheduler, analyzer, MagicMock())
    return service, store, scheduler, analyzer


@pytest.fixture
def client(parts) -> TestClient:
    service = parts[0]
    with TestClient(create_app(service)) as tc:
        yield tc


# ---------------------------------------------------------------------------
# GET /api/pings
# ---------------------------------------------------------------------------


class TestPingsEndpoint:
    """Tests for GET /api/pings."""

    def test_paginated_records(self, client, parts, make_record):
        _, store, _, _ = parts
        store.query.return_value = ([make_record(record_id=2)], 2)

        resp = client.get("/api/pings", params={"limit": 1, "offset": 0})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"][0]["id"] == 2
        assert body["data"][0]["request_type"] == "auto"
        assert body["pagination"] == {"limit": 1, "offset": 0, "total": 2, "has_more": True}

    def test_filters_are_forwarded(self, client, parts):
        _, store, _, _ = parts
        store.query.return_value = ([], 0)

        resp = client.get(
            "/api/pings",
            params={"status_code": 500, "min_response_time": 100, "max_response_time": 900},
        )

        assert resp.status_code == 200
        filters = store.query.call_args.kwargs["filters"]
        assert filters.status_code == 500
        assert filters.min_response_time_ms == 100
        assert filters.max_response_time_ms == 900

    def test_invalid_query_returns_400(self, client, parts):
        _, store, _, _ = parts

        resp = client.get("/api/pings", params={"limit": 5000, "status_code": 42})

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Invalid query parameters"
        assert len(body["details"]) == 2
        store.query.assert_not_called()

    def test_storage_unavailable_returns_503(self, client, parts):
        _, store, _, _ = parts
        store.query.side_effect = StorageUnavailable("Record store is closed")

        resp = client.get("/api/pings")

        assert resp.status_code == 503
        assert resp.json()["message"] == "Record store is closed"

    def test_unexpected_error_returns_500(self, client, parts):
        _, store, _, _ = parts
        store.query.side_effect = RuntimeError("syntax error at or near")

        resp = client.get("/api/pings")

        assert resp.status_code == 500
        assert resp.json() == {
            "error": "Internal server error",
            "message": "Failed to fetch ping records",
        }


# ---------------------------------------------------------------------------
# Statistics and recent records
# ---------------------------------------------------------------------------


class TestStatsEndpoints:
    def test_stats(self, client, parts):
        _, store, _, _ = parts
        store.statistics.return_value = RecordStatistics(
            total_requests=3,
            average_response_time_ms=200,
            success_rate_percent=67,
            status_code_distribution={200: 2, 500: 1},
        )

        resp = client.get("/api/stats", params={"hours": 24})

        assert resp.status_code == 200
        body = resp.json()
        assert body["period"] == "24 hours"
        assert body["data"]["total_requests"] == 3
        assert body["data"]["success_rate_percent"] == 67
        assert body["data"]["status_code_distribution"] == {"200": 2, "500": 1}

    def test_stats_default_window(self, client, parts):
        _, store, _, _ = parts
        store.statistics.return_value = RecordStatistics()

        resp = client.get("/api/stats")

        assert resp.json()["period"] == "24 hours"
        store.statistics.assert_called_once_with(24.0)

    def test_stats_storage_unavailable(self, client, parts):
        _, store, _, _ = parts
        store.statistics.side_effect = StorageUnavailable("Record store is closed")

        assert client.get("/api/stats").status_code == 503

    def test_recent(self, client, parts, make_record):
        _, store, _, _ = parts
        store.recent.return_value = [make_record(record_id=3), make_record(record_id=2)]

        resp = client.get("/api/recent", params={"minutes": 30})

        assert resp.status_code == 200
        body = resp.json()
        assert [r["id"] for r in body["data"]] == [3, 2]
        assert body["period"] == "30 minutes"

    def test_recent_invalid_window(self, client):
        assert client.get("/api/recent", params={"minutes": "-5"}).status_code == 400

    def test_anomaly_stats(self, client, parts):
        _, _, _, analyzer = parts
        analyzer.current_snapshot.return_value = {
            "response_time_stats": {"mean": 0, "std_dev": 0, "min": 0, "max": 0, "count": 0},
            "error_rate": 0.0,
            "total_requests": 0,
        }

        resp = client.get("/api/anomaly-stats")

        assert resp.status_code == 200
        assert resp.json()["data"]["total_requests"] == 0


# ---------------------------------------------------------------------------
# POST /api/ping and GET /health
# ---------------------------------------------------------------------------


class TestManualPing:
    def test_manual_ping(self, client, parts, make_record):
        _, _, scheduler, _ = parts
        scheduler.probe_once.return_value = make_record(
            record_id=9, request_type=RequestType.MANUAL
        )

        resp = client.post("/api/ping")

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Manual ping triggered"
        assert body["data"]["request_type"] == "manual"
        scheduler.probe_once.assert_called_once_with(RequestType.MANUAL)

    def test_manual_ping_failure(self, client, parts):
        _, _, scheduler, _ = parts
        scheduler.probe_once.side_effect = RuntimeError("transport closed")

        resp = client.post("/api/ping")

        assert resp.status_code == 500


class TestHealth:
    def test_healthy(self, client, parts):
        _, store, _, _ = parts
        store.check_health.return_value = True

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert "timestamp" in body

    def test_degraded(self, client, parts):
        _, store, _, _ = parts
        store.check_health.return_value = False

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["database"] == "disconnected"


def test_lifespan_starts_and_stops_service(parts):
    service, store, scheduler, analyzer = parts

    with TestClient(create_app(service)):
        scheduler.start.assert_called_once()
        analyzer.start.assert_called_once()

    scheduler.stop.assert_called_once()
    analyzer.stop.assert_called_once()
    store.close.assert_called_once()
