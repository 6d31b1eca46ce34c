"""
HTTP boundary: the monitor service, the FastAPI app and the CLI entry point.
"""

from .app import create_app
from .service import MonitorService, build_service

__all__ = ["MonitorService", "build_service", "create_app"]
