"""Auto-compound sweeper.

Periodically scans investment records and, for each one with auto-compound
enabled and an open window, folds every whole elapsed day into principal:

    principal <- round2(principal * (1 + daily_rate) ** days)
    window_start <- window_start + days * 86400

The window is advanced, not reset to now, so the sub-day remainder keeps
accruing and the next fold stays phase-aligned. Re-running a sweep right
after a fold finds less than a day elapsed and changes nothing.

Each user is folded in its own transaction; one failing user is logged and
skipped without aborting the rest of the sweep.
"""

import asyncio
import time
from dataclasses import dataclass, field
from decimal import Decimal

from roi.invest.accrual import compound, whole_days
from roi.logging import get_logger
from roi.models import SECONDS_PER_DAY
from roi.store.repository import Store

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Per-sweep counts, for logging and tests."""

    folded: list[int] = field(default_factory=list)
    skipped: int = 0
    failed: list[int] = field(default_factory=list)


class AutoCompoundSweeper:
    """Background task folding whole days of interest into principal.

    Args:
        store: Ledger store providing transactions.
        daily_rate: Daily compounding rate (same as the engine's).
        interval: Seconds between sweeps.
    """

    def __init__(
        self,
        store: Store,
        daily_rate: Decimal = Decimal("0.015"),
        interval: float = 60.0,
    ) -> None:
        self._store = store
        self._daily_rate = daily_rate
        self._interval = interval
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    async def start(self) -> None:
        """Begin sweeping in the background."""
        if self._running:
            logger.warning("sweeper_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("sweeper_started", interval=self._interval)

    async def stop(self) -> None:
        """Stop the sweeper gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("sweeper_stopped")

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("sweep_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._interval)

    async def sweep_once(self, now: float | None = None) -> SweepReport:
        """Run one full scan over auto-compounding records."""
        now = time.time() if now is None else now
        report = SweepReport()

        async with self._store.transaction(write=False) as tx:
            user_ids = await tx.list_auto_compound_user_ids()

        for user_id in user_ids:
            try:
                folded = await self._fold_user(user_id, now)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("auto_compound_fold_failed", user_id=user_id, exc_info=True)
                report.failed.append(user_id)
                continue
            if folded:
                report.folded.append(user_id)
            else:
                report.skipped += 1

        if report.folded or report.failed:
            logger.info(
                "sweep_completed",
                folded=len(report.folded),
                skipped=report.skipped,
                failed=len(report.failed),
            )
        return report

    async def _fold_user(self, user_id: int, now: float) -> bool:
        async with self._store.transaction() as tx:
            # Re-read under the transaction: a foreground call may have
            # claimed, reinvested or disabled auto-compound since the scan.
            record = await tx.get_investment(user_id)
            if not (record.auto_compound and record.is_accruing):
                return False

            days = whole_days(record.window_start, now)  # type: ignore[arg-type]
            if days < 1:
                return False

            before = record.principal
            record.principal = compound(before, self._daily_rate, days)
            record.window_start = record.window_start + days * SECONDS_PER_DAY  # type: ignore[operator]
            await tx.save_investment(record)

        logger.info(
            "auto_compound_folded",
            user_id=user_id,
            days=days,
            principal_before=str(before),
            principal_after=str(record.principal),
        )
        return True
