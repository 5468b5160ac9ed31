"""Error hierarchy shared by every sync layer.

Every anomaly detected during a sync pass is fatal.  Library code raises one
of the subclasses below and the command line entry point converts them into a
non-zero exit status.
"""

from __future__ import annotations

__all__ = [
    "SyncError",
    "ConfigurationError",
    "NotFoundError",
    "DataIntegrityError",
    "TransportError",
]


class SyncError(Exception):
    """Base error raised when a sync pass cannot continue."""


class ConfigurationError(SyncError):
    """Raised for invalid settings, field selections or reference data."""


class NotFoundError(SyncError):
    """Raised when a named entity or the destination spreadsheet is missing."""


class DataIntegrityError(SyncError):
    """Raised when a spreadsheet cell cannot be turned into a field value."""


class TransportError(SyncError):
    """Raised when the catalog or Google APIs report a failure."""
