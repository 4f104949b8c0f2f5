"""Async SQLite connection manager for the ledger store.

Uses aiosqlite for non-blocking database operations with WAL mode.
Transactions are issued explicitly (``isolation_level=None``) by
:class:`roi.store.repository.Store`; schema creation is the job of
:mod:`roi.store.migrations`, not of ``connect()``.
"""

import os
from typing import Self

import aiosqlite

from roi.logging import get_logger

logger = get_logger(__name__)


class LedgerDatabase:
    """Async SQLite connection manager.

    Usage:
        async with LedgerDatabase("data/ledger.db") as database:
            await run_migrations(database, settings.fx)
            store = Store(database)
    """

    def __init__(self, db_path: str = "data/ledger.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the connection and configure pragmas.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=FULL")
        await self._connection.execute("PRAGMA foreign_keys=ON")

        logger.info("ledger_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("ledger_db_closed", db_path=self._db_path)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
