"""
Data models for probe records and record-store queries.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class RequestType(str, Enum):
    """What triggered a probe"""

    MANUAL = "manual"
    AUTO = "auto"


@dataclass(frozen=True)
class ProbeRecord:
    """Outcome of one probe attempt. `id` stays None until the store assigns it."""

    timestamp: str
    request_payload: str
    response_data: str
    status_code: int
    response_time_ms: int
    content_type: str | None = None
    content_length: int | None = None
    request_type: RequestType = RequestType.AUTO
    id: int | None = None

    def __post_init__(self):
        if self.status_code != 0 and not 100 <= self.status_code <= 599:
            raise ValueError(f"Invalid status code: {self.status_code}")
        if self.response_time_ms < 0:
            raise ValueError(f"Negative response time: {self.response_time_ms}")
        if self.content_length is not None and self.content_length < 0:
            raise ValueError(f"Negative content length: {self.content_length}")

    @property
    def is_error(self) -> bool:
        """HTTP error response (4xx/5xx). Status 0 is a failed probe, not an HTTP error."""
        return self.status_code >= 400

    def with_id(self, record_id: int) -> "ProbeRecord":
        return replace(self, id=record_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict"""
        data = asdict(self)
        data["request_type"] = self.request_type.value
        return data

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to named parameters for insertion"""
        data = self.to_dict()
        data.pop("id")
        return data


@dataclass
class RecordFilter:
    """Optional constraints for `RecordStore.query`. All set fields are ANDed."""

    status_code: int | None = None
    min_response_time_ms: int | None = None
    max_response_time_ms: int | None = None
    start_time: datetime | str | None = None
    end_time: datetime | str | None = None


@dataclass
class RecordStatistics:
    """Aggregate statistics over a time window"""

    total_requests: int = 0
    average_response_time_ms: int = 0
    success_rate_percent: int = 0
    status_code_distribution: dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
