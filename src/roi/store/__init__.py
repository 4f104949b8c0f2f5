"""Ledger persistence layer.

Provides the SQLite connection manager, versioned migrations, and the
typed repository with explicit transaction boundaries.
"""

from roi.store.database import LedgerDatabase
from roi.store.migrations import LATEST_VERSION, run_migrations
from roi.store.repository import Store, Transaction

__all__ = [
    "LATEST_VERSION",
    "LedgerDatabase",
    "Store",
    "Transaction",
    "run_migrations",
]
