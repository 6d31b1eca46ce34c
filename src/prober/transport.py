"""
HTTP transport for probes.

`ProbeTransport.send` never raises: every attempt ends in exactly one of the
ProbeOutcome variants.
"""

import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

MAX_REDIRECTS = 5


@dataclass(frozen=True)
class Success:
    """The endpoint answered with a 2xx response"""

    status_code: int
    content_type: str | None
    body: str


@dataclass(frozen=True)
class NetworkFailure:
    """No HTTP response was obtained (connection error, timeout, ...)"""

    message: str
    code: str


@dataclass(frozen=True)
class HttpError:
    """The endpoint answered with a non-2xx response"""

    status_code: int
    body: str
    message: str


ProbeOutcome = Success | NetworkFailure | HttpError


def serialize_body(response: httpx.Response) -> str:
    """Serialize a response body, normalizing JSON bodies to compact form"""
    try:
        return json.dumps(response.json())
    except ValueError:
        return response.text


class ProbeTransport:
    """POSTs JSON payloads to the target URL"""

    def __init__(
        self,
        target_url: str,
        timeout_seconds: float = 30.0,
        user_agent: str = "probe-monitor/1.0.0",
        client: httpx.Client | None = None,
    ):
        self.target_url = target_url
        self.timeout_seconds = timeout_seconds
        self.method = "POST"
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=timeout_seconds,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
        )

    def send(self, payload: dict[str, Any]) -> ProbeOutcome:
        try:
            response = self.client.post(
                self.target_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return HttpError(
                status_code=e.response.status_code,
                body=serialize_body(e.response),
                message=str(e),
            )
        except httpx.TimeoutException as e:
            return NetworkFailure(
                message=str(e) or f"timeout of {self.timeout_seconds}s exceeded",
                code=type(e).__name__,
            )
        except httpx.RequestError as e:
            return NetworkFailure(message=str(e), code=type(e).__name__)
        except Exception as e:
            logger.error("Unexpected probe transport error", error=str(e), exc_info=True)
            return NetworkFailure(message=str(e), code="UNKNOWN_ERROR")

        return Success(
            status_code=response.status_code,
            content_type=response.headers.get("content-type"),
            body=serialize_body(response),
        )

    def describe(self) -> dict[str, Any]:
        """Request settings included in error descriptors"""
        return {
            "url": self.target_url,
            "method": self.method,
            "timeout_ms": int(self.timeout_seconds * 1000),
        }

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
