"""Versioned schema migrations for the ledger store.

Migrations run once, in order, before any engine component is constructed.
Each one is applied inside its own transaction and recorded in
``schema_version``; a database that is already at the latest version is
left untouched. After migrating, :func:`validate_initial_state` checks the
invariants the engine relies on instead of patching fields on every boot.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal

import aiosqlite

from roi.config import FxSettings
from roi.exceptions import PersistenceError
from roi.logging import get_logger
from roi.models import PEGGED_ASSETS, fx_pair
from roi.store.database import LedgerDatabase

logger = get_logger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
    convert_to_usd INTEGER NOT NULL DEFAULT 1,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS wallets (
    user_id INTEGER NOT NULL,
    asset TEXT NOT NULL,
    available TEXT NOT NULL DEFAULT '0',
    frozen TEXT NOT NULL DEFAULT '0',
    updated_at REAL NOT NULL,
    PRIMARY KEY (user_id, asset)
);

CREATE TABLE IF NOT EXISTS fx_rates (
    pair TEXT PRIMARY KEY,
    rate TEXT NOT NULL,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS payouts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    plan_id TEXT NOT NULL,
    original_currency TEXT NOT NULL,
    original_amount TEXT NOT NULL,
    fx_rate_to_usd TEXT,
    usd_amount TEXT,
    converted INTEGER NOT NULL,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS investments (
    user_id INTEGER PRIMARY KEY,
    principal TEXT NOT NULL DEFAULT '0',
    auto_compound INTEGER NOT NULL DEFAULT 0,
    window_start REAL,
    updated_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_payouts_user_ts
    ON payouts(user_id, created_at);
"""


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[aiosqlite.Connection, FxSettings], Awaitable[None]]


async def _create_schema(conn: aiosqlite.Connection, fx: FxSettings) -> None:
    # executescript would commit the open transaction, so run statement by statement
    for statement in _CREATE_TABLES_SQL.split(";"):
        if statement.strip():
            await conn.execute(statement)


async def _seed_fx_rates(conn: aiosqlite.Connection, fx: FxSettings) -> None:
    now = time.time()
    rates = {fx_pair(asset): Decimal("1") for asset in PEGGED_ASSETS}
    rates.update(fx.seed_rates)
    await conn.executemany(
        "INSERT OR IGNORE INTO fx_rates (pair, rate, updated_at) VALUES (?, ?, ?)",
        [(pair, str(rate), now) for pair, rate in rates.items()],
    )


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "create_schema", _create_schema),
    Migration(2, "seed_fx_rates", _seed_fx_rates),
)

LATEST_VERSION = MIGRATIONS[-1].version


async def current_version(database: LedgerDatabase) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    conn = database.db
    await conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version ("
        "version INTEGER PRIMARY KEY, name TEXT NOT NULL, applied_at REAL NOT NULL)"
    )
    cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
    row = await cursor.fetchone()
    return int(row[0]) if row is not None and row[0] is not None else 0


async def run_migrations(database: LedgerDatabase, fx: FxSettings) -> list[int]:
    """Apply all pending migrations and validate the result.

    Returns the list of versions applied by this call.

    Raises:
        PersistenceError: If a migration fails (it is rolled back) or the
            migrated state is invalid.
    """
    conn = database.db
    version = await current_version(database)
    applied: list[int] = []

    for migration in MIGRATIONS:
        if migration.version <= version:
            continue
        await conn.execute("BEGIN IMMEDIATE")
        try:
            await migration.apply(conn, fx)
            await conn.execute(
                "INSERT INTO schema_version (version, name, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.name, time.time()),
            )
            await conn.execute("COMMIT")
        except Exception as exc:
            if conn.in_transaction:
                await conn.execute("ROLLBACK")
            logger.error(
                "migration_failed",
                version=migration.version,
                name=migration.name,
                exc_info=True,
            )
            raise PersistenceError(
                f"Migration {migration.version} ({migration.name}) failed"
            ) from exc
        applied.append(migration.version)
        logger.info("migration_applied", version=migration.version, name=migration.name)

    await validate_initial_state(database)
    return applied


async def validate_initial_state(database: LedgerDatabase) -> None:
    """Check the invariants the engine assumes about a migrated store."""
    conn = database.db
    version = await current_version(database)
    if version != LATEST_VERSION:
        raise PersistenceError(
            f"Schema version {version} does not match expected {LATEST_VERSION}"
        )

    for asset in PEGGED_ASSETS:
        cursor = await conn.execute(
            "SELECT rate FROM fx_rates WHERE pair = ?", (fx_pair(asset),)
        )
        row = await cursor.fetchone()
        if row is None or Decimal(row["rate"]) != Decimal("1"):
            raise PersistenceError(f"Pegged pair {fx_pair(asset)} is missing or not 1")

    cursor = await conn.execute(
        "SELECT COUNT(*) FROM investments "
        "WHERE (window_start IS NULL) != (CAST(principal AS REAL) <= 0)"
    )
    row = await cursor.fetchone()
    if row is not None and row[0]:
        raise PersistenceError(
            f"{row[0]} investment record(s) violate the accrual window invariant"
        )
