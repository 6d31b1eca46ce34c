"""FastAPI application exposing the monitor over HTTP.

The service is built by the caller and injected, so the app carries no
module-level state. The lifespan starts the producers and stops everything on
shutdown.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.errors import InvalidQuery, MonitorError, StorageUnavailable

from .service import MonitorService

logger = structlog.get_logger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _internal_error(message: str, error: Exception) -> JSONResponse:
    logger.error(message, error=str(error), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": message},
    )


def create_app(service: MonitorService, manage_lifecycle: bool = True) -> FastAPI:
    """Build the FastAPI app around `service`

    Args:
        service: Wired monitor service
        manage_lifecycle: Start the producers on startup and stop the service on shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            service.start()
        yield
        if manage_lifecycle:
            service.stop()
        logger.info("API shut down")

    app = FastAPI(title="Probe Monitor", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(InvalidQuery)
    async def invalid_query_handler(request: Request, exc: InvalidQuery) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid query parameters", "details": exc.details},
        )

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
        logger.warning("Storage unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"error": "Service unavailable", "message": str(exc)},
        )

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    @app.get("/api/pings")
    def list_pings(
        limit: str | None = None,
        offset: str | None = None,
        status_code: str | None = None,
        min_response_time: str | None = None,
        max_response_time: str | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
    ):
        """Probe records, newest first, with filtering and pagination"""
        try:
            result = service.list_records(
                limit=limit if limit is not None else 100,
                offset=offset if offset is not None else 0,
                status_code=status_code,
                min_response_time=min_response_time,
                max_response_time=max_response_time,
                start_time=start_time,
                end_time=end_time,
            )
        except MonitorError:
            raise
        except Exception as e:
            return _internal_error("Failed to fetch ping records", e)

        return {
            "success": True,
            "data": [record.to_dict() for record in result["records"]],
            "pagination": {
                "limit": result["limit"],
                "offset": result["offset"],
                "total": result["total"],
                "has_more": result["has_more"],
            },
        }

    @app.get("/api/stats")
    def get_stats(hours: str | None = None):
        try:
            statistics = service.get_statistics(hours if hours is not None else 24)
        except MonitorError:
            raise
        except Exception as e:
            return _internal_error("Failed to fetch statistics", e)

        return {
            "success": True,
            "data": statistics.to_dict(),
            "period": f"{hours or 24} hours",
        }

    @app.get("/api/recent")
    def get_recent(minutes: str | None = None):
        try:
            records = service.get_recent(minutes if minutes is not None else 60)
        except MonitorError:
            raise
        except Exception as e:
            return _internal_error("Failed to fetch recent records", e)

        return {
            "success": True,
            "data": [record.to_dict() for record in records],
            "period": f"{minutes or 60} minutes",
        }

    @app.post("/api/ping")
    def trigger_ping():
        """Run one manual probe and wait for it"""
        try:
            record = service.trigger_manual_probe()
        except Exception as e:
            return _internal_error("Failed to trigger manual ping", e)

        return {
            "success": True,
            "message": "Manual ping triggered",
            "timestamp": _now(),
            "data": record.to_dict() if record is not None else None,
        }

    @app.get("/api/anomaly-stats")
    def anomaly_stats():
        try:
            snapshot = service.get_current_anomaly_snapshot()
        except MonitorError:
            raise
        except Exception as e:
            return _internal_error("Failed to fetch anomaly statistics", e)

        return {"success": True, "data": snapshot}

    @app.get("/health")
    def health():
        database_ok = service.check_health()
        return {
            "status": "healthy" if database_ok else "degraded",
            "timestamp": _now(),
            "database": "connected" if database_ok else "disconnected",
        }

    return app
