"""Storage layer for StargatePortal.

SQLAlchemy models and the async SQLite backend that persists projects,
generation runs, competitions, store records, campaigns, templates,
integrations, analytics events and metrics.
"""

from .sqlite_backend import SQLiteStorageBackend

__all__ = [
    "SQLiteStorageBackend",
]
