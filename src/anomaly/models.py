"""
Data models for anomaly detection.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class AnomalyKind(str, Enum):
    """Which rule produced an anomaly"""

    LATENCY = "latency"
    STATUS_CODE_BURST = "statusCodeBurst"
    ERROR_RATE_WINDOW = "errorRateWindow"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class RollingStats:
    """Summary of a set of response-time samples"""

    mean: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AnomalyEvent:
    """One detected deviation. Broadcast only; never stored by the analyzer."""

    timestamp: str
    kind: AnomalyKind
    severity: Severity
    value: float
    threshold: float
    message: str
    related_record_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict"""
        data = asdict(self)
        data["kind"] = self.kind.value
        data["severity"] = self.severity.value
        return data

    @staticmethod
    def latency_severity(z_score: float) -> Severity:
        if z_score > 3.5:
            return Severity.HIGH
        elif z_score > 3.0:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def burst_severity(error_rate: float) -> Severity:
        if error_rate >= 50:
            return Severity.HIGH
        elif error_rate >= 25:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def hourly_severity(error_rate: float) -> Severity:
        return Severity.HIGH if error_rate >= 50 else Severity.MEDIUM
