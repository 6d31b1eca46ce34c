"""
Exception taxonomy shared by the store, the producers and the API boundary.
"""


class MonitorError(Exception):
    """Base class for all monitor errors"""


class StorageUnavailable(MonitorError):
    """Raised when the record store is not open or has been closed"""


class InvalidQuery(MonitorError):
    """Raised at the boundary when caller-supplied pagination or filters are out of range"""

    def __init__(self, details: list[str]):
        self.details = details
        super().__init__("; ".join(details))
