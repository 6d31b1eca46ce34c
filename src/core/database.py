"""
Pooled PostgreSQL connection management.
Shared by the record store and the anomaly archive.
"""

import threading
from contextlib import contextmanager

import psycopg2
import psycopg2.pool
import structlog

from .errors import StorageUnavailable

logger = structlog.get_logger(__name__)


class PostgresConnection:
    """Base class for PostgreSQL access through a thread-safe connection pool"""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "monitor_db",
        user: str = "monitor",
        password: str = "",
        dsn: str | None = None,
        min_connections: int = 1,
        max_connections: int = 5,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.dsn = dsn
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.pool = None
        self._lock = threading.Lock()
        self._connect()

    def _connect(self):
        """Open the connection pool"""
        try:
            if self.dsn:
                self.pool = psycopg2.pool.ThreadedConnectionPool(
                    self.min_connections,
                    self.max_connections,
                    dsn=self.dsn,
                    connect_timeout=10,
                )
            else:
                self.pool = psycopg2.pool.ThreadedConnectionPool(
                    self.min_connections,
                    self.max_connections,
                    host=self.host,
                    port=self.port,
                    database=self.database,
                    user=self.user,
                    password=self.password,
                    connect_timeout=10,
                )
            logger.info(
                "PostgreSQL pool established",
                host=self.host if not self.dsn else None,
                database=self.database if not self.dsn else None,
                max_connections=self.max_connections,
            )
        except Exception as e:
            logger.error("Failed to connect to PostgreSQL", error=str(e))
            raise

    @property
    def is_open(self) -> bool:
        return self.pool is not None

    @contextmanager
    def get_cursor(self):
        """Borrow a pooled connection for one transaction (commit on success, rollback on error)"""
        pool = self.pool
        if pool is None:
            raise StorageUnavailable("Record store is closed")

        try:
            connection = pool.getconn()
        except (psycopg2.pool.PoolError, psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StorageUnavailable(f"No database connection available: {e}") from e

        cursor = None
        try:
            cursor = connection.cursor()
            yield cursor
            connection.commit()
        except Exception as e:
            # A dead connection cannot roll back; keep the original error
            if not connection.closed:
                connection.rollback()
            logger.error("Database operation failed", error=str(e))
            raise
        finally:
            if cursor is not None:
                cursor.close()
            if not pool.closed:
                pool.putconn(connection)

    def check_health(self) -> bool:
        """Check if database connection is healthy"""
        try:
            with self.get_cursor() as cursor:
                cursor.execute("SELECT 1")
                return cursor.fetchone()[0] == 1
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    def close(self):
        """Close every pooled connection. Safe to call more than once."""
        with self._lock:
            if self.pool is None:
                return
            pool, self.pool = self.pool, None
        pool.closeall()
        logger.info("PostgreSQL pool closed")
