"""
Endpoint prober: random payload generation, HTTP transport and the periodic scheduler.
"""

from .payload import generate_payload
from .scheduler import ProbeScheduler
from .transport import HttpError, NetworkFailure, ProbeOutcome, ProbeTransport, Success

__all__ = [
    "ProbeScheduler",
    "ProbeTransport",
    "ProbeOutcome",
    "Success",
    "NetworkFailure",
    "HttpError",
    "generate_payload",
]
