"""
PostgreSQL-backed record store for probe records.

Handles:
- Schema creation and the request_type column migration
- Inserting probe records (ids come from the table's sequence)
- Filtered, paginated reads and recent-window reads
- Aggregate statistics over a time window
"""

import math
from datetime import UTC, datetime
from typing import Any

import structlog

from src.core.config import StorageConfig
from src.core.database import PostgresConnection

from .models import ProbeRecord, RecordFilter, RecordStatistics, RequestType

logger = structlog.get_logger(__name__)

RECORD_COLUMNS = (
    "id, timestamp, request_payload, response_data, status_code, "
    "response_time_ms, content_type, content_length, request_type"
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's rounding)"""
    return int(math.floor(value + 0.5))


class RecordStore(PostgresConnection):
    """Durable log of probe records"""

    def __init__(self, config: StorageConfig):
        super().__init__(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            password=config.password,
            dsn=config.dsn,
            min_connections=config.min_connections,
            max_connections=config.max_connections,
        )
        self.config = config

    def ensure_schema(self):
        """Create the probe_records table and its indexes if they don't exist"""
        query = """
            CREATE TABLE IF NOT EXISTS probe_records (
                id BIGSERIAL PRIMARY KEY,
                timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                request_payload TEXT NOT NULL,
                response_data TEXT NOT NULL,
                status_code INTEGER NOT NULL
                    CHECK (status_code = 0 OR status_code BETWEEN 100 AND 599),
                response_time_ms INTEGER NOT NULL CHECK (response_time_ms >= 0),
                content_type TEXT,
                content_length INTEGER CHECK (content_length >= 0)
            );

            -- Tables created before manual probes existed lack this column
            ALTER TABLE probe_records
                ADD COLUMN IF NOT EXISTS request_type VARCHAR(10) NOT NULL DEFAULT 'auto';

            CREATE INDEX IF NOT EXISTS idx_probe_records_timestamp
                ON probe_records (timestamp DESC, id DESC);
            CREATE INDEX IF NOT EXISTS idx_probe_records_status_code
                ON probe_records (status_code);
            CREATE INDEX IF NOT EXISTS idx_probe_records_response_time
                ON probe_records (response_time_ms);
        """
        with self.get_cursor() as cursor:
            cursor.execute(query)
        logger.info("Ensured probe_records table exists")

    def insert(self, record: ProbeRecord) -> int:
        """Insert a probe record and return its assigned id

        Raises:
            StorageUnavailable: If the store is closed
        """
        query = """
            INSERT INTO probe_records (
                timestamp, request_payload, response_data, status_code,
                response_time_ms, content_type, content_length, request_type
            ) VALUES (
                %(timestamp)s, %(request_payload)s, %(response_data)s, %(status_code)s,
                %(response_time_ms)s, %(content_type)s, %(content_length)s, %(request_type)s
            )
            RETURNING id
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, record.to_db_dict())
            record_id = cursor.fetchone()[0]

        logger.debug("Probe record inserted", record_id=record_id, status_code=record.status_code)
        return record_id

    def query(
        self, limit: int = 100, offset: int = 0, filters: RecordFilter | None = None
    ) -> tuple[list[ProbeRecord], int]:
        """Fetch one page of records matching the filters, newest first

        Args:
            limit: Page size (validated by the caller)
            offset: Number of matching records to skip
            filters: Optional constraints, ANDed together

        Returns:
            (records, total) where total counts every match regardless of paging
        """
        where_clause, params = self._build_where(filters or RecordFilter())

        # Count and page run as separate short transactions
        count_query = f"SELECT COUNT(*) FROM probe_records {where_clause}"
        with self.get_cursor() as cursor:
            cursor.execute(count_query, params)
            total = cursor.fetchone()[0]

        data_query = f"""
            SELECT {RECORD_COLUMNS}
            FROM probe_records
            {where_clause}
            ORDER BY timestamp DESC, id DESC
            LIMIT %(limit)s OFFSET %(offset)s
        """
        with self.get_cursor() as cursor:
            cursor.execute(data_query, {**params, "limit": limit, "offset": offset})
            rows = cursor.fetchall()

        return [self._row_to_record(row) for row in rows], total

    def recent(self, window_minutes: float = 60) -> list[ProbeRecord]:
        """All records from the last `window_minutes`, newest first"""
        query = f"""
            SELECT {RECORD_COLUMNS}
            FROM probe_records
            WHERE timestamp >= NOW() - %(minutes)s * INTERVAL '1 minute'
            ORDER BY timestamp DESC, id DESC
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, {"minutes": window_minutes})
            rows = cursor.fetchall()

        logger.debug("Queried recent records", window_minutes=window_minutes, rows=len(rows))
        return [self._row_to_record(row) for row in rows]

    def statistics(self, window_hours: float = 24) -> RecordStatistics:
        """Aggregate statistics over the last `window_hours`"""
        query = """
            SELECT status_code, COUNT(*), COALESCE(SUM(response_time_ms), 0)
            FROM probe_records
            WHERE timestamp >= NOW() - %(hours)s * INTERVAL '1 hour'
            GROUP BY status_code
            ORDER BY status_code
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, {"hours": window_hours})
            rows = cursor.fetchall()

        distribution = {int(status_code): int(count) for status_code, count, _ in rows}
        total_requests = sum(distribution.values())
        if total_requests == 0:
            return RecordStatistics()

        total_response_time = sum(int(rt_sum) for _, _, rt_sum in rows)
        success_count = sum(count for code, count in distribution.items() if code < 400)

        return RecordStatistics(
            total_requests=total_requests,
            average_response_time_ms=round_half_up(total_response_time / total_requests),
            success_rate_percent=round_half_up(success_count / total_requests * 100),
            status_code_distribution=distribution,
        )

    @staticmethod
    def _build_where(filters: RecordFilter) -> tuple[str, dict[str, Any]]:
        """Translate a RecordFilter into a WHERE clause and named parameters"""
        clauses = []
        params: dict[str, Any] = {}

        if filters.status_code is not None:
            clauses.append("status_code = %(status_code)s")
            params["status_code"] = filters.status_code

        if filters.min_response_time_ms is not None:
            clauses.append("response_time_ms >= %(min_response_time_ms)s")
            params["min_response_time_ms"] = filters.min_response_time_ms

        if filters.max_response_time_ms is not None:
            clauses.append("response_time_ms <= %(max_response_time_ms)s")
            params["max_response_time_ms"] = filters.max_response_time_ms

        if filters.start_time is not None:
            clauses.append("timestamp >= %(start_time)s")
            params["start_time"] = filters.start_time

        if filters.end_time is not None:
            clauses.append("timestamp <= %(end_time)s")
            params["end_time"] = filters.end_time

        where_clause = "WHERE " + " AND ".join(clauses) if clauses else ""
        return where_clause, params

    @staticmethod
    def _row_to_record(row: tuple) -> ProbeRecord:
        (
            record_id,
            timestamp,
            request_payload,
            response_data,
            status_code,
            response_time_ms,
            content_type,
            content_length,
            request_type,
        ) = row

        if isinstance(timestamp, datetime):
            timestamp = timestamp.astimezone(UTC).isoformat()

        return ProbeRecord(
            id=record_id,
            timestamp=timestamp,
            request_payload=request_payload,
            response_data=response_data,
            status_code=status_code,
            response_time_ms=response_time_ms,
            content_type=content_type,
            content_length=content_length,
            request_type=RequestType(request_type or RequestType.AUTO.value),
        )
