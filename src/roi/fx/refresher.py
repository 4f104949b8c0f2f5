"""Periodic FX refresh loop.

Calls FxOracle.refresh() on a fixed interval (hourly by default). A failed
refresh is logged and discarded; the oracle has already kept its last good
rates, and the next tick retries.
"""

import asyncio

from roi.fx.oracle import FxOracle, RefreshResult
from roi.logging import get_logger

logger = get_logger(__name__)


class FxRefresher:
    """Background task that keeps the FX cache fresh.

    Args:
        oracle: The FX oracle to refresh.
        interval: Seconds between refreshes.
    """

    def __init__(self, oracle: FxOracle, interval: float = 3600.0) -> None:
        self._oracle = oracle
        self._interval = interval
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._last_result: RefreshResult | None = None

    @property
    def last_result(self) -> RefreshResult | None:
        return self._last_result

    async def start(self) -> None:
        """Begin refreshing in the background (first refresh runs immediately)."""
        if self._running:
            logger.warning("fx_refresher_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._refresh_loop())
        logger.info("fx_refresher_started", interval=self._interval)

    async def stop(self) -> None:
        """Stop the refresh loop gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("fx_refresher_stopped")

    async def refresh_once(self) -> RefreshResult:
        """Run one refresh, logging (and otherwise discarding) a failure."""
        result = await self._oracle.refresh()
        self._last_result = result
        if not result.ok:
            logger.warning("fx_refresh_failed", error=result.error)
        return result

    async def _refresh_loop(self) -> None:
        while self._running:
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("fx_refresher_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._interval)
