"""
Tests for the anomaly archive subscriber.
"""

from src.anomaly.archive import AnomalyArchive
from src.anomaly.models import AnomalyEvent, AnomalyKind, Severity
from src.events.broadcaster import EventBroadcaster, Topic


def latency_event():
    return AnomalyEvent(
        timestamp="2025-10-02T12:00:00+00:00",
        kind=AnomalyKind.LATENCY,
        severity=Severity.HIGH,
        value=8000.0,
        threshold=4682.1,
        message="Response time 8000ms is 4.47 standard deviations above mean (476ms)",
        related_record_id=21,
    )


class TestAnomalyArchive:
    """Tests for AnomalyArchive."""

    def test_ensure_schema(self, mock_pool, storage_config):
        _, _, _, cursor = mock_pool
        archive = AnomalyArchive(storage_config)

        archive.ensure_schema()

        assert "CREATE TABLE IF NOT EXISTS anomaly_events" in cursor.execute.call_args[0][0]

    def test_insert_anomaly(self, mock_pool, storage_config):
        _, _, connection, cursor = mock_pool
        archive = AnomalyArchive(storage_config)

        assert archive.insert_anomaly(latency_event()) is True

        query, params = cursor.execute.call_args[0]
        assert "INSERT INTO anomaly_events" in query
        assert params["kind"] == "latency"
        assert params["severity"] == "high"
        assert params["related_record_id"] == 21
        connection.commit.assert_called_once()

    def test_insert_anomaly_failure_returns_false(self, mock_pool, storage_config):
        _, _, _, cursor = mock_pool
        cursor.execute.side_effect = Exception("insert failed")
        archive = AnomalyArchive(storage_config)

        assert archive.insert_anomaly(latency_event()) is False

    def test_attach_receives_broadcast_events(self, mock_pool, storage_config):
        _, _, _, cursor = mock_pool
        broadcaster = EventBroadcaster()
        archive = AnomalyArchive(storage_config)

        archive.attach(broadcaster)
        archive.attach(broadcaster)
        delivered = broadcaster.publish(Topic.ANOMALY, latency_event())

        assert delivered == 1
        assert broadcaster.subscriber_count(Topic.ANOMALY) == 1
        cursor.execute.assert_called_once()

    def test_detach(self, mock_pool, storage_config):
        broadcaster = EventBroadcaster()
        archive = AnomalyArchive(storage_config)
        archive.attach(broadcaster)

        archive.detach(broadcaster)

        assert broadcaster.subscriber_count(Topic.ANOMALY) == 0
        assert archive.subscription is None
