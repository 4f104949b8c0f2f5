"""Typed repository over the ledger database.

All SQL lives here. Engine components never hold rows between calls: they
open a unit of work with :meth:`Store.transaction`, load the records they
need, mutate them in memory, save them back, and let the context manager
commit. The store lock serializes every unit of work on the single
connection, which is the one logical ledger authority.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
"""

import asyncio
import sqlite3
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

import aiosqlite

from roi.exceptions import PersistenceError
from roi.logging import get_logger
from roi.models import InvestmentRecord, Payout, User, Wallet
from roi.store.database import LedgerDatabase

logger = get_logger(__name__)


def _opt_decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


class Transaction:
    """Record-level load/save operations inside one open transaction.

    Only obtained from :meth:`Store.transaction`; do not keep a reference
    after the ``async with`` block exits.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def _fetchone(self, sql: str, params: tuple = ()) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params)
        return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        cursor = await self._conn.execute(sql, params)
        return list(await cursor.fetchall())

    # ──────────────────────────────────────────────
    # Users
    # ──────────────────────────────────────────────

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            convert_to_usd=bool(row["convert_to_usd"]),
            created_at=row["created_at"],
        )

    async def get_user(self, user_id: int) -> User | None:
        row = await self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row) if row is not None else None

    async def get_user_by_email(self, email: str) -> User | None:
        row = await self._fetchone("SELECT * FROM users WHERE email = ?", (email,))
        return self._row_to_user(row) if row is not None else None

    async def insert_user(self, email: str, convert_to_usd: bool, created_at: float) -> User:
        cursor = await self._conn.execute(
            "INSERT INTO users (email, convert_to_usd, created_at) VALUES (?, ?, ?)",
            (email, int(convert_to_usd), created_at),
        )
        return User(
            id=cursor.lastrowid,  # type: ignore[arg-type]
            email=email,
            convert_to_usd=convert_to_usd,
            created_at=created_at,
        )

    async def update_convert_to_usd(self, user_id: int, enabled: bool) -> None:
        await self._conn.execute(
            "UPDATE users SET convert_to_usd = ? WHERE id = ?",
            (int(enabled), user_id),
        )

    # ──────────────────────────────────────────────
    # Wallets
    # ──────────────────────────────────────────────

    async def get_wallet(self, user_id: int, asset: str) -> Wallet:
        """Load a wallet, or a zero wallet if the user never held the asset."""
        row = await self._fetchone(
            "SELECT available, frozen FROM wallets WHERE user_id = ? AND asset = ?",
            (user_id, asset),
        )
        if row is None:
            return Wallet(user_id=user_id, asset=asset)
        return Wallet(
            user_id=user_id,
            asset=asset,
            available=Decimal(row["available"]),
            frozen=Decimal(row["frozen"]),
        )

    async def list_wallets(self, user_id: int) -> list[Wallet]:
        rows = await self._fetchall(
            "SELECT asset, available, frozen FROM wallets WHERE user_id = ? ORDER BY asset",
            (user_id,),
        )
        return [
            Wallet(
                user_id=user_id,
                asset=row["asset"],
                available=Decimal(row["available"]),
                frozen=Decimal(row["frozen"]),
            )
            for row in rows
        ]

    async def save_wallet(self, wallet: Wallet) -> None:
        await self._conn.execute(
            "INSERT INTO wallets (user_id, asset, available, frozen, updated_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, asset) DO UPDATE SET "
            "available = excluded.available, frozen = excluded.frozen, "
            "updated_at = excluded.updated_at",
            (
                wallet.user_id,
                wallet.asset,
                str(wallet.available),
                str(wallet.frozen),
                time.time(),
            ),
        )

    # ──────────────────────────────────────────────
    # FX rates
    # ──────────────────────────────────────────────

    async def list_rates(self) -> dict[str, Decimal]:
        rows = await self._fetchall("SELECT pair, rate FROM fx_rates")
        return {row["pair"]: Decimal(row["rate"]) for row in rows}

    async def save_rates(self, rates: dict[str, Decimal]) -> None:
        now = time.time()
        await self._conn.executemany(
            "INSERT OR REPLACE INTO fx_rates (pair, rate, updated_at) VALUES (?, ?, ?)",
            [(pair, str(rate), now) for pair, rate in rates.items()],
        )

    # ──────────────────────────────────────────────
    # Payouts (append-only)
    # ──────────────────────────────────────────────

    async def insert_payout(self, payout: Payout) -> Payout:
        cursor = await self._conn.execute(
            "INSERT INTO payouts (user_id, plan_id, original_currency, original_amount, "
            "fx_rate_to_usd, usd_amount, converted, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                payout.user_id,
                payout.plan_id,
                payout.original_currency,
                str(payout.original_amount),
                str(payout.fx_rate_to_usd) if payout.fx_rate_to_usd is not None else None,
                str(payout.usd_amount) if payout.usd_amount is not None else None,
                int(payout.converted),
                payout.created_at,
            ),
        )
        return Payout(
            user_id=payout.user_id,
            plan_id=payout.plan_id,
            original_currency=payout.original_currency,
            original_amount=payout.original_amount,
            fx_rate_to_usd=payout.fx_rate_to_usd,
            usd_amount=payout.usd_amount,
            converted=payout.converted,
            created_at=payout.created_at,
            id=cursor.lastrowid,
        )

    async def list_payouts(self, user_id: int) -> list[Payout]:
        rows = await self._fetchall(
            "SELECT * FROM payouts WHERE user_id = ? ORDER BY created_at, id",
            (user_id,),
        )
        return [
            Payout(
                user_id=row["user_id"],
                plan_id=row["plan_id"],
                original_currency=row["original_currency"],
                original_amount=Decimal(row["original_amount"]),
                fx_rate_to_usd=_opt_decimal(row["fx_rate_to_usd"]),
                usd_amount=_opt_decimal(row["usd_amount"]),
                converted=bool(row["converted"]),
                created_at=row["created_at"],
                id=row["id"],
            )
            for row in rows
        ]

    # ──────────────────────────────────────────────
    # Investments
    # ──────────────────────────────────────────────

    @staticmethod
    def _row_to_investment(row: aiosqlite.Row) -> InvestmentRecord:
        return InvestmentRecord(
            user_id=row["user_id"],
            principal=Decimal(row["principal"]),
            auto_compound=bool(row["auto_compound"]),
            window_start=row["window_start"],
        )

    async def get_investment(self, user_id: int) -> InvestmentRecord:
        """Load an investment record, or an empty one if none exists yet."""
        row = await self._fetchone(
            "SELECT * FROM investments WHERE user_id = ?", (user_id,)
        )
        if row is None:
            return InvestmentRecord(user_id=user_id)
        return self._row_to_investment(row)

    async def list_auto_compound_user_ids(self) -> list[int]:
        rows = await self._fetchall(
            "SELECT user_id FROM investments "
            "WHERE auto_compound = 1 AND window_start IS NOT NULL ORDER BY user_id"
        )
        return [row["user_id"] for row in rows]

    async def save_investment(self, record: InvestmentRecord) -> None:
        await self._conn.execute(
            "INSERT INTO investments (user_id, principal, auto_compound, window_start, updated_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET "
            "principal = excluded.principal, auto_compound = excluded.auto_compound, "
            "window_start = excluded.window_start, updated_at = excluded.updated_at",
            (
                record.user_id,
                str(record.principal),
                int(record.auto_compound),
                record.window_start,
                time.time(),
            ),
        )


class Store:
    """Serialized unit-of-work access to the ledger database.

    Usage:
        async with store.transaction() as tx:
            wallet = await tx.get_wallet(user_id, "USD")
            wallet.available += amount
            await tx.save_wallet(wallet)
    """

    def __init__(self, database: LedgerDatabase) -> None:
        self._database = database
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self, write: bool = True) -> AsyncIterator[Transaction]:
        """Open a transaction, commit on success, roll back on any error.

        SQLite errors raised while the block runs, or at commit, surface as
        PersistenceError; the effect is not committed in either case.
        """
        async with self._lock:
            conn = self._database.db
            await conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield Transaction(conn)
            except BaseException as exc:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                if isinstance(exc, sqlite3.Error):
                    logger.error("ledger_write_failed", exc_info=True)
                    raise PersistenceError(str(exc)) from exc
                raise

            try:
                await conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                logger.error("ledger_commit_failed", exc_info=True)
                raise PersistenceError(f"Commit failed: {exc}") from exc
