"""
Live-update relay forwarding broadcast events to Kafka topics.
"""

import json

import structlog
from kafka import KafkaProducer

from .broadcaster import EventBroadcaster, Subscription, Topic

logger = structlog.get_logger(__name__)


class KafkaRelay:
    """Subscribes to the broadcaster and forwards every event to Kafka

    Records go to `<prefix>-records`, anomalies to `<prefix>-anomalies`.
    """

    def __init__(self, broadcaster: EventBroadcaster, bootstrap_servers: str, topic_prefix: str):
        self.broadcaster = broadcaster
        self.topics = {
            Topic.RECORD: f"{topic_prefix}-records",
            Topic.ANOMALY: f"{topic_prefix}-anomalies",
        }

        try:
            self.producer = KafkaProducer(
                bootstrap_servers=bootstrap_servers,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                compression_type="gzip",
            )
            logger.info(
                "Kafka producer initialized",
                bootstrap_servers=bootstrap_servers,
                topics=list(self.topics.values()),
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka producer", error=str(e))
            raise

        self.subscriptions: list[Subscription] = [
            broadcaster.subscribe(Topic.RECORD, self._forward_record),
            broadcaster.subscribe(Topic.ANOMALY, self._forward_anomaly),
        ]
        self.stats = {"records_sent": 0, "anomalies_sent": 0}

    def _forward_record(self, record) -> None:
        self.producer.send(self.topics[Topic.RECORD], value=record.to_dict())
        self.stats["records_sent"] += 1

    def _forward_anomaly(self, anomaly) -> None:
        self.producer.send(self.topics[Topic.ANOMALY], value=anomaly.to_dict())
        self.stats["anomalies_sent"] += 1

    def close(self) -> None:
        """Unsubscribe, flush pending messages and close the producer"""
        for subscription in self.subscriptions:
            self.broadcaster.unsubscribe(subscription)
        self.subscriptions.clear()

        self.producer.flush()
        self.producer.close()
        logger.info(
            "Kafka relay closed",
            records_sent=self.stats["records_sent"],
            anomalies_sent=self.stats["anomalies_sent"],
        )
