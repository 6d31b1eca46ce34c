"""Integration tests for the record store against a real PostgreSQL.

Opt-in: set TEST_DATABASE_URL to a throwaway database. Each test empties the
probe_records table first.
"""

import os
from datetime import UTC, datetime, timedelta

import pytest

from src.core.config import StorageConfig
from src.core.errors import StorageUnavailable
from src.storage.database import RecordStore
from src.storage.models import ProbeRecord, RecordFilter, RequestType

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set"),
]

T0 = datetime(2025, 10, 1, 10, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def record_at(timestamp, status_code=200, response_time_ms=100, request_type=RequestType.AUTO):
    return ProbeRecord(
        timestamp=timestamp.isoformat(),
        request_payload='{"requestId": "abc"}',
        response_data='{"ok": true}',
        status_code=status_code,
        response_time_ms=response_time_ms,
        content_type="application/json",
        content_length=12,
        request_type=request_type,
    )


def minutes_ago(minutes):
    return datetime.now(UTC) - timedelta(minutes=minutes)


@pytest.fixture
def store():
    store = RecordStore(StorageConfig(dsn=TEST_DATABASE_URL, max_connections=2))
    store.ensure_schema()
    with store.get_cursor() as cursor:
        cursor.execute("TRUNCATE probe_records RESTART IDENTITY")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Insert and ordering
# ---------------------------------------------------------------------------


class TestInsert:
    def test_ids_strictly_increase(self, store):
        ids = [store.insert(record_at(T0)) for _ in range(5)]

        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_round_trip(self, store):
        record_id = store.insert(
            record_at(T0, status_code=503, response_time_ms=42, request_type=RequestType.MANUAL)
        )

        records, total = store.query()

        assert total == 1
        stored = records[0]
        assert stored.id == record_id
        assert stored.timestamp == T0.isoformat()
        assert stored.status_code == 503
        assert stored.response_time_ms == 42
        assert stored.request_type == RequestType.MANUAL

    def test_failed_probe_status_zero_is_accepted(self, store):
        store.insert(record_at(T0, status_code=0, response_time_ms=30000))

        records, _ = store.query()

        assert records[0].status_code == 0

    def test_insert_after_close_raises(self, store):
        store.close()

        with pytest.raises(StorageUnavailable):
            store.insert(record_at(T0))

    def test_ensure_schema_is_repeatable(self, store):
        store.ensure_schema()
        store.ensure_schema()

        assert store.check_health() is True

    def test_missing_request_type_column_is_added(self, store):
        with store.get_cursor() as cursor:
            cursor.execute("ALTER TABLE probe_records DROP COLUMN request_type")
            cursor.execute(
                """
                INSERT INTO probe_records (
                    timestamp, request_payload, response_data, status_code, response_time_ms
                ) VALUES (%s, '{}', '{}', 200, 10)
                """,
                (T0,),
            )

        store.ensure_schema()
        records, _ = store.query()

        assert records[0].request_type == RequestType.AUTO


class TestQuery:
    def test_newest_first_with_id_tie_break(self, store):
        older = store.insert(record_at(T0 - timedelta(minutes=5)))
        first = store.insert(record_at(T0))
        second = store.insert(record_at(T0))

        records, _ = store.query()

        assert [r.id for r in records] == [second, first, older]

    def test_total_ignores_limit_and_offset(self, store):
        for i in range(5):
            store.insert(record_at(T0 + timedelta(minutes=i)))

        records, total = store.query(limit=2, offset=1)

        assert total == 5
        assert len(records) == 2
        assert records[0].timestamp == (T0 + timedelta(minutes=3)).isoformat()

    def test_offset_past_the_end(self, store):
        store.insert(record_at(T0))

        records, total = store.query(limit=10, offset=10)

        assert records == []
        assert total == 1

    def test_response_time_bounds_are_inclusive(self, store):
        for response_time_ms in (99, 100, 500, 501):
            store.insert(record_at(T0, response_time_ms=response_time_ms))

        records, total = store.query(
            filters=RecordFilter(min_response_time_ms=100, max_response_time_ms=500)
        )

        assert total == 2
        assert sorted(r.response_time_ms for r in records) == [100, 500]

    def test_time_bounds_are_inclusive(self, store):
        for hours in range(4):
            store.insert(record_at(T0 + timedelta(hours=hours)))

        records, total = store.query(
            filters=RecordFilter(start_time=T0 + timedelta(hours=1), end_time=T0 + timedelta(hours=2))
        )

        assert total == 2
        assert [r.timestamp for r in records] == [
            (T0 + timedelta(hours=2)).isoformat(),
            (T0 + timedelta(hours=1)).isoformat(),
        ]

    def test_filters_are_combined(self, store):
        store.insert(record_at(T0, status_code=500, response_time_ms=800))
        store.insert(record_at(T0, status_code=500, response_time_ms=50))
        store.insert(record_at(T0, status_code=200, response_time_ms=800))

        records, total = store.query(
            filters=RecordFilter(status_code=500, min_response_time_ms=100)
        )

        assert total == 1
        assert records[0].status_code == 500
        assert records[0].response_time_ms == 800


class TestWindows:
    def test_recent_window(self, store):
        inside = store.insert(record_at(minutes_ago(10)))
        newest = store.insert(record_at(minutes_ago(1)))
        store.insert(record_at(minutes_ago(120)))

        records = store.recent(window_minutes=60)

        assert [r.id for r in records] == [newest, inside]

    def test_statistics(self, store):
        store.insert(record_at(minutes_ago(30), status_code=200, response_time_ms=100))
        store.insert(record_at(minutes_ago(20), status_code=200, response_time_ms=200))
        store.insert(record_at(minutes_ago(10), status_code=500, response_time_ms=300))
        # Outside the window
        store.insert(record_at(minutes_ago(48 * 60), status_code=503, response_time_ms=9000))

        stats = store.statistics(window_hours=24)

        assert stats.total_requests == 3
        assert stats.average_response_time_ms == 200
        assert stats.success_rate_percent == 67
        assert stats.status_code_distribution == {200: 2, 500: 1}

    def test_statistics_empty_window(self, store):
        store.insert(record_at(minutes_ago(48 * 60)))

        stats = store.statistics(window_hours=1)

        assert stats.total_requests == 0
        assert stats.status_code_distribution == {}
