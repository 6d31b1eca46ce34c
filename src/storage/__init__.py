"""
Record store - PostgreSQL persistence for probe records.
"""

from .database import RecordStore
from .models import ProbeRecord, RecordFilter, RecordStatistics, RequestType

__all__ = ["RecordStore", "ProbeRecord", "RecordFilter", "RecordStatistics", "RequestType"]
