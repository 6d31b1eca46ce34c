import logging
import os

import structlog
from dotenv import load_dotenv

load_dotenv()

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(level: int | None = logging.INFO, json_logs: bool = False) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: The logging level to use. Defaults to INFO.
        json_logs: Render one JSON object per line instead of the colored console format.
    """
    logging.basicConfig(level=level, format="%(message)s", force=True)

    # Quiet the scheduler's own per-run chatter
    logging.getLogger("apscheduler").setLevel(max(level or logging.INFO, logging.WARNING))

    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
            pad_event=40,
        )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def level_from_env(default: int = logging.INFO) -> int:
    """Resolve LOG_LEVEL from the environment, falling back to the given level"""
    return LOG_LEVELS.get(os.getenv("LOG_LEVEL", "").upper(), default)


setup_logging(level=level_from_env(), json_logs=os.getenv("LOG_FORMAT") == "json")
