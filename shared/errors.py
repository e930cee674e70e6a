"""
ITSM Ticket Intelligence - Error Taxonomy

Configuration and I/O errors are fatal and reach the caller unchanged.
Upstream errors from the completion endpoint are caught by the analyzer,
which falls back to basic pattern detection.
"""

from typing import Optional


class TicketIntelligenceError(Exception):
    """Base class for all pipeline errors"""


class ConfigurationError(TicketIntelligenceError):
    """A required source-specific parameter is missing"""


class UnsupportedFormatError(TicketIntelligenceError):
    """Export file extension is neither tabular nor JSON"""


class UpstreamRequestError(TicketIntelligenceError):
    """A ticketing backend or completion endpoint request failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(UpstreamRequestError):
    """HTTP 429 from an upstream service; the only retried failure"""
