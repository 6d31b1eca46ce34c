"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from src.core.config import AnalyzerConfig, ProbeConfig, StorageConfig
from src.storage.models import ProbeRecord, RequestType

BASE_TIME = datetime(2025, 10, 2, 12, 30, 0, tzinfo=UTC)


# Storage fixtures
@pytest.fixture
def storage_config():
    """Basic storage configuration for testing."""
    return StorageConfig(
        host="localhost",
        port=5432,
        database="test_db",
        user="test_user",
        password="test_password",
    )


@pytest.fixture
def mock_pool():
    """Patch the psycopg2 connection pool.

    Yields (pool_class, pool, connection, cursor).
    """
    with patch("src.core.database.psycopg2.pool.ThreadedConnectionPool") as mock_pool_class:
        pool = MagicMock()
        pool.closed = False
        connection = MagicMock()
        connection.closed = 0
        cursor = MagicMock()
        pool.getconn.return_value = connection
        connection.cursor.return_value = cursor
        mock_pool_class.return_value = pool
        yield mock_pool_class, pool, connection, cursor


# Producer fixtures
@pytest.fixture
def probe_config():
    """Probe configuration pointing at a test endpoint."""
    return ProbeConfig(
        target_url="http://probe.test/echo",
        interval_ms=60_000,
        timeout_ms=1_000,
    )


@pytest.fixture
def analyzer_config():
    """Analyzer configuration with default rule constants."""
    return AnalyzerConfig(interval_ms=60_000)


# Record fixtures
@pytest.fixture
def make_record():
    """Factory for stored probe records, newest first when built with increasing `age`."""

    def _make(
        record_id=1,
        status_code=200,
        response_time_ms=100,
        age=timedelta(0),
        request_type=RequestType.AUTO,
    ):
        return ProbeRecord(
            id=record_id,
            timestamp=(BASE_TIME - age).isoformat(),
            request_payload='{"requestId": "abc"}',
            response_data='{"ok": true}',
            status_code=status_code,
            response_time_ms=response_time_ms,
            content_type="application/json",
            content_length=12,
            request_type=request_type,
        )

    return _make
