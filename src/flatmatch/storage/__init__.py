"""Storage modules for listings, users and sent alerts.

This package provides a SQLite implementation of the data contracts the
alert poller depends on.
"""

from .sqlite import SQLiteStore

__all__ = ["SQLiteStore"]
