"""
Probe scheduler: periodically probes the target, records the outcome and broadcasts it.
"""

import json
import threading
import time
from datetime import UTC, datetime
from typing import Any

import structlog

from src.core.config import ProbeConfig
from src.core.periodic import PeriodicJob
from src.events.broadcaster import EventBroadcaster, Topic
from src.storage.database import RecordStore
from src.storage.models import ProbeRecord, RequestType

from .payload import generate_payload
from .transport import HttpError, NetworkFailure, ProbeOutcome, ProbeTransport, Success

logger = structlog.get_logger(__name__)


class ProbeScheduler:
    """Issues one probe immediately on start and then one per interval"""

    def __init__(
        self,
        store: RecordStore,
        broadcaster: EventBroadcaster,
        config: ProbeConfig,
        transport: ProbeTransport | None = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.config = config
        self.transport = transport or ProbeTransport(
            target_url=config.target_url,
            timeout_seconds=config.timeout_seconds,
            user_agent=config.user_agent,
        )
        self._job = PeriodicJob("probe", self._tick, config.interval_seconds)

        # Timer ticks and manual probes update these from different threads
        self._stats_lock = threading.Lock()
        self.stats = {
            "total_probes": 0,
            "failed_probes": 0,
            "insert_errors": 0,
        }

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    @property
    def running(self) -> bool:
        return self._job.running

    def start(self) -> None:
        if not self._job.start(run_immediately=True):
            logger.debug("Probe scheduler already running")
            return
        logger.info(
            "Probe scheduler started",
            target_url=self.config.target_url,
            interval_seconds=self.config.interval_seconds,
        )

    def stop(self) -> None:
        """Disarm future probes. Safe to call repeatedly."""
        if self._job.running:
            self._job.stop()
            logger.info("Probe scheduler stopped", **self.stats)

    def _tick(self) -> None:
        self.probe_once(RequestType.AUTO)

    def probe_once(self, request_type: RequestType | str = RequestType.AUTO) -> ProbeRecord | None:
        """Perform exactly one probe and wait for it to complete

        Returns:
            The stored record with its id, or None if it could not be stored
        """
        request_type = RequestType(request_type)
        payload = generate_payload(environment=self.config.environment)

        logger.info("Probing target", url=self.config.target_url, request_type=request_type.value)
        started = time.monotonic()
        outcome = self.transport.send(payload)
        response_time_ms = max(0, round((time.monotonic() - started) * 1000))

        self._count("total_probes")
        record = self._build_record(payload, outcome, response_time_ms, request_type)
        if not isinstance(outcome, Success):
            self._count("failed_probes")

        try:
            record_id = self.store.insert(record)
        except Exception as e:
            self._count("insert_errors")
            logger.error(
                "Failed to store probe record",
                status_code=record.status_code,
                error=str(e),
            )
            return None

        stored = record.with_id(record_id)
        logger.info(
            "Probe completed",
            record_id=record_id,
            status_code=stored.status_code,
            response_time_ms=response_time_ms,
        )
        self.broadcaster.publish(Topic.RECORD, stored)
        return stored

    def _build_record(
        self,
        payload: dict[str, Any],
        outcome: ProbeOutcome,
        response_time_ms: int,
        request_type: RequestType,
    ) -> ProbeRecord:
        """Turn a transport outcome into a ProbeRecord (without id)"""
        common = {
            "timestamp": datetime.now(UTC).isoformat(),
            "request_payload": json.dumps(payload),
            "response_time_ms": response_time_ms,
            "request_type": request_type,
        }

        if isinstance(outcome, Success):
            return ProbeRecord(
                response_data=outcome.body,
                status_code=outcome.status_code,
                content_type=outcome.content_type,
                content_length=len(outcome.body.encode("utf-8")),
                **common,
            )

        if isinstance(outcome, HttpError):
            # Nonstandard statuses are recorded as failed probes
            status_code = outcome.status_code if 100 <= outcome.status_code <= 599 else 0
            descriptor = {
                "error": outcome.message,
                "code": f"HTTP_{outcome.status_code}",
                "response": outcome.body,
            }
        elif isinstance(outcome, NetworkFailure):
            status_code = 0
            descriptor = {"error": outcome.message, "code": outcome.code}
        else:
            raise TypeError(f"Unknown probe outcome: {outcome!r}")

        descriptor["config"] = self.transport.describe()
        logger.warning(
            "Probe failed",
            status_code=status_code,
            error=descriptor["error"],
            code=descriptor["code"],
        )

        return ProbeRecord(
            response_data=json.dumps(descriptor),
            status_code=status_code,
            content_type="application/json",
            content_length=0,
            **common,
        )

    def close(self) -> None:
        self.stop()
        self.transport.close()
