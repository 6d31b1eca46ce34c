"""
Runtime configuration for the probe monitor.

Defaults live on the dataclasses; `MonitorConfig.from_env()` overlays environment
variables (a `.env` file is loaded by `src.core.logger`).
"""

import math
import os
from dataclasses import dataclass, field

DEFAULT_TARGET_URL = "https://httpbin.org/anything"
DEFAULT_PROBE_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_PROBE_TIMEOUT_MS = 30 * 1000
DEFAULT_ANALYSIS_INTERVAL_MS = 10 * 60 * 1000
DEFAULT_Z_SCORE_THRESHOLD = 2.5
DEFAULT_LATENCY_THRESHOLD_MS = 5000


def read_number_env(key: str, fallback: float) -> float:
    """Read a numeric environment variable; anything that is not a finite number yields the fallback"""
    raw = os.getenv(key)
    if not raw:
        return fallback
    try:
        parsed = float(raw)
    except ValueError:
        return fallback
    return parsed if math.isfinite(parsed) else fallback


def read_duration_env(key: str, fallback: float) -> float:
    """Like read_number_env, but zero or negative durations also yield the fallback"""
    parsed = read_number_env(key, fallback)
    return parsed if parsed > 0 else fallback


def read_bool_env(key: str, fallback: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return fallback
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StorageConfig:
    """PostgreSQL settings. A DSN, when given, takes precedence over the discrete fields."""

    dsn: str | None = None
    host: str = "localhost"
    port: int = 5432
    database: str = "monitor_db"
    user: str = "monitor"
    password: str = "monitor_password"
    min_connections: int = 1
    max_connections: int = 5


@dataclass
class ProbeConfig:
    """Configuration for the probe scheduler"""

    target_url: str = DEFAULT_TARGET_URL
    interval_ms: float = DEFAULT_PROBE_INTERVAL_MS
    timeout_ms: float = DEFAULT_PROBE_TIMEOUT_MS
    user_agent: str = "probe-monitor/1.0.0"
    environment: str = "development"

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass
class AnalyzerConfig:
    """Configuration for the anomaly analyzer"""

    interval_ms: float = DEFAULT_ANALYSIS_INTERVAL_MS
    z_score_threshold: float = DEFAULT_Z_SCORE_THRESHOLD
    latency_threshold_ms: float = DEFAULT_LATENCY_THRESHOLD_MS

    # Rule constants
    window_hours: int = 24
    min_records: int = 10
    burst_window: int = 20
    burst_min_errors: int = 3
    burst_threshold_percent: float = 20.0
    hourly_min_records: int = 5
    hourly_threshold_percent: float = 30.0

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000


@dataclass
class MonitorConfig:
    """Top-level configuration wiring every component"""

    storage: StorageConfig = field(default_factory=StorageConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)

    # Optional downstream subscribers
    kafka_bootstrap_servers: str | None = None
    kafka_topic_prefix: str = "probe-monitor"
    persist_anomalies: bool = False

    # HTTP boundary
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Build a configuration from environment variables"""
        storage = StorageConfig(
            dsn=os.getenv("DATABASE_URL") or None,
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(read_number_env("POSTGRES_PORT", 5432)),
            database=os.getenv("POSTGRES_DB", "monitor_db"),
            user=os.getenv("POSTGRES_USER", "monitor"),
            password=os.getenv("POSTGRES_PASSWORD", "monitor_password"),
        )
        probe = ProbeConfig(
            target_url=os.getenv("PROBE_TARGET_URL") or DEFAULT_TARGET_URL,
            interval_ms=read_duration_env("PROBE_INTERVAL_MS", DEFAULT_PROBE_INTERVAL_MS),
            timeout_ms=read_duration_env("PROBE_TIMEOUT_MS", DEFAULT_PROBE_TIMEOUT_MS),
            environment=os.getenv("APP_ENV", "development"),
        )
        analyzer = AnalyzerConfig(
            interval_ms=read_duration_env("ANALYSIS_INTERVAL_MS", DEFAULT_ANALYSIS_INTERVAL_MS),
            z_score_threshold=read_number_env("Z_SCORE_THRESHOLD", DEFAULT_Z_SCORE_THRESHOLD),
            latency_threshold_ms=read_number_env(
                "LATENCY_THRESHOLD_MS", DEFAULT_LATENCY_THRESHOLD_MS
            ),
        )
        return cls(
            storage=storage,
            probe=probe,
            analyzer=analyzer,
            kafka_bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS") or None,
            kafka_topic_prefix=os.getenv("KAFKA_TOPIC_PREFIX", "probe-monitor"),
            persist_anomalies=read_bool_env("PERSIST_ANOMALIES"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(read_number_env("API_PORT", 8001)),
        )
