"""
Anomaly detection over the probe series: rolling statistics, rule checks and archiving.
"""

from .analyzer import AnomalyAnalyzer
from .archive import AnomalyArchive
from .models import AnomalyEvent, AnomalyKind, RollingStats, Severity
from .stats import calculate_rolling_stats

__all__ = [
    "AnomalyAnalyzer",
    "AnomalyArchive",
    "AnomalyEvent",
    "AnomalyKind",
    "RollingStats",
    "Severity",
    "calculate_rolling_stats",
]
