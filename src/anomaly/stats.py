"""
Rolling statistics over probe records.
"""

from collections.abc import Sequence

import numpy as np
import pandas as pd

from src.storage.models import ProbeRecord

from .models import RollingStats

FRAME_COLUMNS = ["id", "timestamp", "status_code", "response_time_ms", "hour"]


def calculate_rolling_stats(values: Sequence[float] | np.ndarray) -> RollingStats:
    """Population mean/std-dev, min, max and count. An empty input yields all zeros."""
    samples = np.asarray(values, dtype=float)
    if samples.size == 0:
        return RollingStats()

    return RollingStats(
        mean=float(samples.mean()),
        std_dev=float(samples.std()),
        min=float(samples.min()),
        max=float(samples.max()),
        count=int(samples.size),
    )


def records_to_frame(records: Sequence[ProbeRecord]) -> pd.DataFrame:
    """Build an analysis frame, preserving the input order (newest first from the store)

    The `hour` column is the UTC calendar-hour bucket, formatted YYYY-MM-DDTHH.
    """
    if not records:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    frame = pd.DataFrame(
        {
            "id": [r.id for r in records],
            "timestamp": [r.timestamp for r in records],
            "status_code": [r.status_code for r in records],
            "response_time_ms": [r.response_time_ms for r in records],
        }
    )
    frame["hour"] = pd.to_datetime(frame["timestamp"], utc=True, format="ISO8601").dt.strftime(
        "%Y-%m-%dT%H"
    )
    return frame


def error_rate_percent(status_codes: pd.Series) -> float:
    """Share of HTTP error responses (status >= 400) in percent; 0 for no samples"""
    if len(status_codes) == 0:
        return 0.0
    return float((status_codes >= 400).sum()) / len(status_codes) * 100
