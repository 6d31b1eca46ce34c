"""
Periodic anomaly analysis over the recent probe series.

Each cycle recomputes everything from the last 24 hours of records:
1. Latency: z-score outliers that are also above an absolute threshold
2. Status burst: HTTP errors among the most recent probes
3. Hourly error rate: calendar-hour buckets with an elevated error share
"""

from datetime import UTC, datetime
from typing import Any

import pandas as pd
import structlog

from src.core.config import AnalyzerConfig
from src.core.periodic import PeriodicJob
from src.events.broadcaster import EventBroadcaster, Topic
from src.storage.database import RecordStore

from .models import AnomalyEvent, AnomalyKind
from .stats import calculate_rolling_stats, error_rate_percent, records_to_frame

logger = structlog.get_logger(__name__)


class AnomalyAnalyzer:
    """Runs the anomaly rules on an interval and broadcasts every detected event"""

    def __init__(self, store: RecordStore, broadcaster: EventBroadcaster, config: AnalyzerConfig):
        self.store = store
        self.broadcaster = broadcaster
        self.config = config
        self._job = PeriodicJob("anomaly-analysis", self.analyze, config.interval_seconds)

        self.stats = {
            "cycles": 0,
            "skipped_cycles": 0,
            "failed_cycles": 0,
            "anomalies_detected": 0,
        }

        logger.info(
            "Anomaly analyzer initialized",
            z_score_threshold=config.z_score_threshold,
            latency_threshold_ms=config.latency_threshold_ms,
            interval_seconds=config.interval_seconds,
        )

    @property
    def running(self) -> bool:
        return self._job.running

    def start(self) -> None:
        if self._job.start(run_immediately=True):
            logger.info("Anomaly analyzer started")

    def stop(self) -> None:
        """Disarm future cycles. Safe to call repeatedly."""
        if self._job.running:
            self._job.stop()
            logger.info("Anomaly analyzer stopped", **self.stats)

    def analyze(self) -> list[AnomalyEvent]:
        """Run one analysis cycle. Never raises.

        Returns:
            The events published during this cycle
        """
        self.stats["cycles"] += 1
        emitted: list[AnomalyEvent] = []

        try:
            records = self.store.recent(self.config.window_hours * 60)

            if len(records) < self.config.min_records:
                self.stats["skipped_cycles"] += 1
                logger.info(
                    "Insufficient data for anomaly analysis",
                    records=len(records),
                    required=self.config.min_records,
                )
                return emitted

            frame = records_to_frame(records)

            for check in (
                self._check_latency,
                self._check_status_burst,
                self._check_hourly_error_rate,
            ):
                for event in check(frame):
                    self._emit(event)
                    emitted.append(event)

            logger.info(
                "Anomaly analysis completed",
                records=len(records),
                anomalies=len(emitted),
            )

        except Exception as e:
            self.stats["failed_cycles"] += 1
            logger.error("Anomaly analysis failed", error=str(e), exc_info=True)

        return emitted

    def _check_latency(self, frame: pd.DataFrame) -> list[AnomalyEvent]:
        response_times = frame["response_time_ms"].astype(float)
        stats = calculate_rolling_stats(response_times.to_numpy())

        # A flat series has no outliers
        if stats.std_dev == 0:
            return []

        z_scores = (response_times - stats.mean).abs() / stats.std_dev
        mask = (z_scores > self.config.z_score_threshold) & (
            response_times > self.config.latency_threshold_ms
        )
        threshold = stats.mean + self.config.z_score_threshold * stats.std_dev

        events = []
        for index in frame.index[mask.to_numpy()]:
            z_score = float(z_scores.loc[index])
            response_time = float(response_times.loc[index])
            record_id = frame.at[index, "id"]
            events.append(
                AnomalyEvent(
                    timestamp=frame.at[index, "timestamp"],
                    kind=AnomalyKind.LATENCY,
                    severity=AnomalyEvent.latency_severity(z_score),
                    value=response_time,
                    threshold=threshold,
                    message=(
                        f"Response time {response_time:.0f}ms is {z_score:.2f} standard "
                        f"deviations above mean ({stats.mean:.0f}ms)"
                    ),
                    related_record_id=int(record_id) if pd.notna(record_id) else None,
                )
            )
        return events

    def _check_status_burst(self, frame: pd.DataFrame) -> list[AnomalyEvent]:
        # Frame is newest first
        latest = frame.head(self.config.burst_window)
        error_count = int((latest["status_code"] >= 400).sum())

        if error_count < self.config.burst_min_errors:
            return []

        error_rate = error_count / self.config.burst_window * 100
        return [
            AnomalyEvent(
                timestamp=datetime.now(UTC).isoformat(),
                kind=AnomalyKind.STATUS_CODE_BURST,
                severity=AnomalyEvent.burst_severity(error_rate),
                value=error_rate,
                threshold=self.config.burst_threshold_percent,
                message=(
                    f"High error rate detected: {error_count}/{self.config.burst_window} "
                    f"recent requests failed ({error_rate:.1f}%)"
                ),
            )
        ]

    def _check_hourly_error_rate(self, frame: pd.DataFrame) -> list[AnomalyEvent]:
        events = []
        for hour, bucket in frame.groupby("hour", sort=True):
            if len(bucket) < self.config.hourly_min_records:
                continue

            error_rate = error_rate_percent(bucket["status_code"])
            if error_rate <= self.config.hourly_threshold_percent:
                continue

            error_count = int((bucket["status_code"] >= 400).sum())
            events.append(
                AnomalyEvent(
                    timestamp=f"{hour}:00:00+00:00",
                    kind=AnomalyKind.ERROR_RATE_WINDOW,
                    severity=AnomalyEvent.hourly_severity(error_rate),
                    value=error_rate,
                    threshold=self.config.hourly_threshold_percent,
                    message=(
                        f"Elevated error rate in {hour}: {error_count}/{len(bucket)} "
                        f"requests failed ({error_rate:.1f}%)"
                    ),
                )
            )
        return events

    def _emit(self, event: AnomalyEvent) -> None:
        self.stats["anomalies_detected"] += 1
        logger.warning(
            "Anomaly detected",
            kind=event.kind.value,
            severity=event.severity.value,
            value=round(event.value, 2),
            threshold=round(event.threshold, 2),
            record_id=event.related_record_id,
        )
        self.broadcaster.publish(Topic.ANOMALY, event)

    def current_snapshot(self, window_minutes: float = 60) -> dict[str, Any]:
        """Response-time stats and error rate over the last hour

        Storage errors propagate to the caller.
        """
        records = self.store.recent(window_minutes)
        frame = records_to_frame(records)
        stats = calculate_rolling_stats(frame["response_time_ms"].astype(float).to_numpy())

        return {
            "response_time_stats": stats.to_dict(),
            "error_rate": error_rate_percent(frame["status_code"]),
            "total_requests": len(records),
        }
