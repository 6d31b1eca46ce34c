"""
Probe Monitor - CLI Entry Point
Probes the target endpoint, analyzes the series and serves the HTTP API
"""

import argparse
import math
import os
import signal
import sys
import threading

import structlog
import uvicorn

from src.api.app import create_app
from src.api.service import build_service
from src.core.config import MonitorConfig
from src.core.logger import LOG_LEVELS, setup_logging

logger = structlog.get_logger(__name__)


def positive_number(value):
    """argparse type for durations that must be greater than zero"""
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from None
    if not math.isfinite(parsed) or parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number, got {value!r}")
    return parsed


def default_log_level() -> str:
    """LOG_LEVEL from the environment, or INFO when unset or unknown"""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    return level if level in LOG_LEVELS else "INFO"


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    defaults = MonitorConfig.from_env()

    parser = argparse.ArgumentParser(
        description="Endpoint probe monitor with anomaly detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Basic usage with defaults
        python -m src.api.serve

        # Probe a custom endpoint every 30 seconds
        python -m src.api.serve --target-url https://example.com/echo --probe-interval-ms 30000

        # Single manual probe, then exit
        python -m src.api.serve --once

        # Run the producers without the HTTP API
        python -m src.api.serve --no-api

        # Using environment variables
        export PROBE_TARGET_URL=https://example.com/echo
        export POSTGRES_HOST=postgres
        python -m src.api.serve
        """,
    )

    # Probe settings
    parser.add_argument(
        "--target-url",
        default=defaults.probe.target_url,
        help="Endpoint to probe (default: https://httpbin.org/anything or PROBE_TARGET_URL env var)",
    )
    parser.add_argument(
        "--probe-interval-ms",
        type=positive_number,
        default=defaults.probe.interval_ms,
        help="Milliseconds between probes (default: 300000 or PROBE_INTERVAL_MS env var)",
    )
    parser.add_argument(
        "--probe-timeout-ms",
        type=positive_number,
        default=defaults.probe.timeout_ms,
        help="Probe request timeout in milliseconds (default: 30000 or PROBE_TIMEOUT_MS env var)",
    )

    # Analyzer settings
    parser.add_argument(
        "--analysis-interval-ms",
        type=positive_number,
        default=defaults.analyzer.interval_ms,
        help="Milliseconds between analysis cycles (default: 600000 or ANALYSIS_INTERVAL_MS env var)",
    )
    parser.add_argument(
        "--z-score-threshold",
        type=float,
        default=defaults.analyzer.z_score_threshold,
        help="Z-score above which latency is anomalous (default: 2.5 or Z_SCORE_THRESHOLD env var)",
    )
    parser.add_argument(
        "--latency-threshold-ms",
        type=float,
        default=defaults.analyzer.latency_threshold_ms,
        help="Absolute latency floor for anomalies (default: 5000 or LATENCY_THRESHOLD_MS env var)",
    )

    # PostgreSQL settings
    parser.add_argument(
        "--database-url",
        default=defaults.storage.dsn,
        help="PostgreSQL DSN, overrides the discrete settings (DATABASE_URL env var)",
    )
    parser.add_argument(
        "--postgres-host",
        default=defaults.storage.host,
        help="PostgreSQL host (default: localhost or POSTGRES_HOST env var)",
    )
    parser.add_argument(
        "--postgres-port",
        type=int,
        default=defaults.storage.port,
        help="PostgreSQL port (default: 5432 or POSTGRES_PORT env var)",
    )
    parser.add_argument(
        "--postgres-db",
        default=defaults.storage.database,
        help="PostgreSQL database (default: monitor_db or POSTGRES_DB env var)",
    )
    parser.add_argument(
        "--postgres-user",
        default=defaults.storage.user,
        help="PostgreSQL user (default: monitor or POSTGRES_USER env var)",
    )
    parser.add_argument(
        "--postgres-password",
        default=defaults.storage.password,
        help="PostgreSQL password (default: monitor_password or POSTGRES_PASSWORD env var)",
    )

    # Downstream subscribers
    parser.add_argument(
        "--kafka-servers",
        default=defaults.kafka_bootstrap_servers,
        help="Relay records and anomalies to Kafka (KAFKA_BOOTSTRAP_SERVERS env var)",
    )
    parser.add_argument(
        "--kafka-topic-prefix",
        default=defaults.kafka_topic_prefix,
        help="Kafka topic prefix (default: probe-monitor or KAFKA_TOPIC_PREFIX env var)",
    )
    parser.add_argument(
        "--persist-anomalies",
        action="store_true",
        default=defaults.persist_anomalies,
        help="Archive anomaly events in PostgreSQL (PERSIST_ANOMALIES env var)",
    )

    # HTTP API
    parser.add_argument(
        "--host",
        default=defaults.api_host,
        help="API bind address (default: 0.0.0.0 or API_HOST env var)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=defaults.api_port,
        help="API port (default: 8001 or API_PORT env var)",
    )

    # Runtime modes
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single manual probe and exit",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        help="Run the scheduler and analyzer without the HTTP API",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default=default_log_level(),
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=os.getenv("LOG_FORMAT") == "json",
        help="Emit JSON logs (default: console, or LOG_FORMAT=json)",
    )

    return parser.parse_args(argv)


def build_config_from_args(args) -> MonitorConfig:
    """Build a MonitorConfig from command-line arguments"""
    config = MonitorConfig()

    config.probe.target_url = args.target_url
    config.probe.interval_ms = args.probe_interval_ms
    config.probe.timeout_ms = args.probe_timeout_ms

    config.analyzer.interval_ms = args.analysis_interval_ms
    config.analyzer.z_score_threshold = args.z_score_threshold
    config.analyzer.latency_threshold_ms = args.latency_threshold_ms

    config.storage.dsn = args.database_url or None
    config.storage.host = args.postgres_host
    config.storage.port = args.postgres_port
    config.storage.database = args.postgres_db
    config.storage.user = args.postgres_user
    config.storage.password = args.postgres_password

    config.kafka_bootstrap_servers = args.kafka_servers or None
    config.kafka_topic_prefix = args.kafka_topic_prefix
    config.persist_anomalies = args.persist_anomalies

    config.api_host = args.host
    config.api_port = args.port

    logger.info(
        "Configuration built from arguments",
        target_url=config.probe.target_url,
        probe_interval_ms=config.probe.interval_ms,
        analysis_interval_ms=config.analyzer.interval_ms,
    )
    return config


def wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM"""
    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Shutdown signal received", signal=signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    stop_event.wait()


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    # Setup logging
    log_level = LOG_LEVELS[args.log_level]
    setup_logging(level=log_level, json_logs=args.json_logs)

    logger.info("Starting Probe Monitor")

    service = None
    try:
        config = build_config_from_args(args)
        service = build_service(config)

        if args.once:
            record = service.trigger_manual_probe()
            if record is None:
                logger.error("Manual probe could not be stored")
                return 1
            logger.info(
                "Manual probe completed",
                record_id=record.id,
                status_code=record.status_code,
                response_time_ms=record.response_time_ms,
            )
            return 0

        if args.no_api:
            service.start()
            wait_for_shutdown()
            return 0

        app = create_app(service)
        uvicorn.run(app, host=config.api_host, port=config.api_port, log_level=args.log_level.lower())
        logger.info("Monitor completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Monitor failed", error=str(e), exc_info=True)
        return 1

    finally:
        if service is not None:
            service.stop()


if __name__ == "__main__":
    sys.exit(main())
