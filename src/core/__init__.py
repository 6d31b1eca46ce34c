"""
Core utilities shared across the application.
"""

from .database import PostgresConnection
from .errors import InvalidQuery, MonitorError, StorageUnavailable
from .logger import setup_logging
from .periodic import PeriodicJob

__all__ = [
    "PostgresConnection",
    "PeriodicJob",
    "MonitorError",
    "StorageUnavailable",
    "InvalidQuery",
    "setup_logging",
]
