"""
Boundary service: validated access to the record store, manual probes and the
current anomaly snapshot. Also wires every component from a MonitorConfig.
"""

from datetime import UTC, datetime
from typing import Any

import structlog

from src.anomaly.analyzer import AnomalyAnalyzer
from src.anomaly.archive import AnomalyArchive
from src.core.config import MonitorConfig
from src.core.errors import InvalidQuery
from src.events.broadcaster import EventBroadcaster
from src.events.kafka_relay import KafkaRelay
from src.prober.scheduler import ProbeScheduler
from src.storage.database import RecordStore
from src.storage.models import ProbeRecord, RecordFilter, RecordStatistics, RequestType

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = 100


def _parse_int(
    name: str,
    value: Any,
    errors: list[str],
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    """Parse an optional integer parameter, appending a message to `errors` when invalid"""
    if value is None or value == "":
        return None

    if isinstance(value, bool):
        errors.append(f'"{name}" must be a number')
        return None
    if isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip())
        except ValueError:
            errors.append(f'"{name}" must be an integer')
            return None

    if minimum is not None and parsed < minimum:
        errors.append(f'"{name}" must be greater than or equal to {minimum}')
        return None
    if maximum is not None and parsed > maximum:
        errors.append(f'"{name}" must be less than or equal to {maximum}')
        return None
    return parsed


def _parse_positive_number(name: str, value: Any, errors: list[str]) -> float | None:
    if value is None or value == "":
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        errors.append(f'"{name}" must be a number')
        return None
    if not parsed > 0:
        errors.append(f'"{name}" must be a positive number')
        return None
    return parsed


def _parse_iso_datetime(name: str, value: Any, errors: list[str]) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            errors.append(f'"{name}" must be a valid ISO 8601 date')
            return None
    # Stored timestamps are UTC; a value without an offset is taken as UTC too
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class MonitorService:
    """Everything the HTTP layer (or any other boundary) may ask of the monitor"""

    def __init__(
        self,
        store: RecordStore,
        scheduler: ProbeScheduler,
        analyzer: AnomalyAnalyzer,
        broadcaster: EventBroadcaster,
        relays: list | None = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.analyzer = analyzer
        self.broadcaster = broadcaster
        self.relays = relays or []
        self._stopped = False

    def start(self) -> None:
        """Start both producers"""
        self.scheduler.start()
        self.analyzer.start()
        logger.info("Monitor service started")

    def stop(self) -> None:
        """Stop the producers, close relays and the store. Safe to call repeatedly."""
        if self._stopped:
            return
        self._stopped = True

        self.scheduler.stop()
        self.analyzer.stop()

        for relay in self.relays:
            try:
                relay.close()
            except Exception as e:
                logger.error("Failed to close relay", relay=type(relay).__name__, error=str(e))

        self.scheduler.close()
        self.store.close()
        logger.info("Monitor service stopped")

    def list_records(
        self,
        limit: Any = DEFAULT_PAGE_SIZE,
        offset: Any = 0,
        status_code: Any = None,
        min_response_time: Any = None,
        max_response_time: Any = None,
        start_time: Any = None,
        end_time: Any = None,
    ) -> dict[str, Any]:
        """Validated, filtered and paginated read

        Returns:
            {"records", "total", "has_more"} where has_more = offset + limit < total

        Raises:
            InvalidQuery: With one detail message per invalid parameter
        """
        errors: list[str] = []

        page_size = _parse_int("limit", limit, errors, minimum=1, maximum=MAX_PAGE_SIZE)
        page_offset = _parse_int("offset", offset, errors, minimum=0)
        filters = RecordFilter(
            status_code=_parse_int("status_code", status_code, errors, minimum=100, maximum=599),
            min_response_time_ms=_parse_int("min_response_time", min_response_time, errors, minimum=0),
            max_response_time_ms=_parse_int("max_response_time", max_response_time, errors, minimum=0),
            start_time=_parse_iso_datetime("start_time", start_time, errors),
            end_time=_parse_iso_datetime("end_time", end_time, errors),
        )

        if errors:
            raise InvalidQuery(errors)

        if page_size is None:
            page_size = DEFAULT_PAGE_SIZE
        if page_offset is None:
            page_offset = 0

        records, total = self.store.query(limit=page_size, offset=page_offset, filters=filters)
        return {
            "records": records,
            "total": total,
            "limit": page_size,
            "offset": page_offset,
            "has_more": page_offset + page_size < total,
        }

    def get_statistics(self, window_hours: Any = 24) -> RecordStatistics:
        errors: list[str] = []
        hours = _parse_positive_number("hours", window_hours, errors)
        if errors:
            raise InvalidQuery(errors)
        return self.store.statistics(hours or 24)

    def get_recent(self, window_minutes: Any = 60) -> list[ProbeRecord]:
        errors: list[str] = []
        minutes = _parse_positive_number("minutes", window_minutes, errors)
        if errors:
            raise InvalidQuery(errors)
        return self.store.recent(minutes or 60)

    def trigger_manual_probe(self) -> ProbeRecord | None:
        """Run one probe tagged `manual` and wait for it to complete"""
        logger.info("Manual probe triggered")
        return self.scheduler.probe_once(RequestType.MANUAL)

    def get_current_anomaly_snapshot(self) -> dict[str, Any]:
        return self.analyzer.current_snapshot(window_minutes=60)

    def check_health(self) -> bool:
        return self.store.check_health()


def build_service(config: MonitorConfig) -> MonitorService:
    """Construct and wire every component described by `config`

    The store schema is created on the way. Optional subscribers (Kafka relay,
    anomaly archive) are attached to the broadcaster when configured.
    """
    broadcaster = EventBroadcaster()

    store = RecordStore(config.storage)
    store.ensure_schema()

    scheduler = ProbeScheduler(store, broadcaster, config.probe)
    analyzer = AnomalyAnalyzer(store, broadcaster, config.analyzer)

    relays: list = []
    if config.kafka_bootstrap_servers:
        relays.append(
            KafkaRelay(
                broadcaster,
                bootstrap_servers=config.kafka_bootstrap_servers,
                topic_prefix=config.kafka_topic_prefix,
            )
        )

    if config.persist_anomalies:
        archive = AnomalyArchive(config.storage)
        archive.ensure_schema()
        archive.attach(broadcaster)
        relays.append(archive)

    logger.info(
        "Monitor service built",
        target_url=config.probe.target_url,
        kafka_enabled=bool(config.kafka_bootstrap_servers),
        persist_anomalies=config.persist_anomalies,
    )
    return MonitorService(store, scheduler, analyzer, broadcaster, relays)
