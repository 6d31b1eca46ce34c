"""
PostgreSQL archive for detected anomalies.

Optional downstream subscriber: the analyzer only broadcasts events, this
collaborator persists them when attached to the broadcaster.
"""

import structlog

from src.core.config import StorageConfig
from src.core.database import PostgresConnection
from src.events.broadcaster import EventBroadcaster, Subscription, Topic

from .models import AnomalyEvent

logger = structlog.get_logger(__name__)


class AnomalyArchive(PostgresConnection):
    """Stores anomaly events in the anomaly_events table"""

    def __init__(self, config: StorageConfig):
        super().__init__(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            password=config.password,
            dsn=config.dsn,
            min_connections=1,
            max_connections=2,
        )
        self.subscription: Subscription | None = None

    def ensure_schema(self):
        query = """
            CREATE TABLE IF NOT EXISTS anomaly_events (
                id BIGSERIAL PRIMARY KEY,
                timestamp TIMESTAMPTZ NOT NULL,
                kind VARCHAR(32) NOT NULL,
                severity VARCHAR(10) NOT NULL,
                value DOUBLE PRECISION NOT NULL,
                threshold DOUBLE PRECISION NOT NULL,
                message TEXT NOT NULL,
                related_record_id BIGINT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );

            CREATE INDEX IF NOT EXISTS idx_anomaly_events_timestamp
                ON anomaly_events (timestamp DESC);
        """
        with self.get_cursor() as cursor:
            cursor.execute(query)
        logger.info("Ensured anomaly_events table exists")

    def insert_anomaly(self, anomaly: AnomalyEvent) -> bool:
        """Insert a detected anomaly

        Args:
            anomaly: AnomalyEvent to insert

        Returns:
            True if successful, False otherwise
        """
        query = """
            INSERT INTO anomaly_events (
                timestamp, kind, severity, value, threshold, message, related_record_id
            ) VALUES (
                %(timestamp)s, %(kind)s, %(severity)s, %(value)s, %(threshold)s,
                %(message)s, %(related_record_id)s
            )
        """

        try:
            with self.get_cursor() as cursor:
                cursor.execute(query, anomaly.to_dict())
                logger.debug(
                    "Anomaly inserted",
                    kind=anomaly.kind.value,
                    severity=anomaly.severity.value,
                )
                return True
        except Exception as e:
            logger.error(
                "Failed to insert anomaly",
                kind=anomaly.kind.value,
                error=str(e),
            )
            return False

    def attach(self, broadcaster: EventBroadcaster) -> Subscription:
        """Subscribe to the anomaly topic. Attaching twice keeps the first subscription."""
        if self.subscription is None:
            self.subscription = broadcaster.subscribe(Topic.ANOMALY, self.insert_anomaly)
        return self.subscription

    def detach(self, broadcaster: EventBroadcaster) -> None:
        if self.subscription is not None:
            broadcaster.unsubscribe(self.subscription)
            self.subscription = None
