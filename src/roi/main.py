"""Entry point for the ROI ledger engine.

Runs migrations, wires all components together, and runs the two
independent background tasks (FX refresh and auto-compound sweep) until
SIGINT/SIGTERM. The API layer embeds the same wiring via
:func:`build_components` and calls into ``components["service"]``.

Component wiring order (in build_components):
1. Store (over an already-migrated LedgerDatabase)
2. AssetPrecision + Ledger
3. PriceSource + FxOracle (cache loaded from the store)
4. UserDirectory, PayoutRecorder
5. ExchangeConverter, Settlement
6. InvestmentEngine, AutoCompoundSweeper
7. PortfolioService
8. LedgerService (operation contracts)
9. FxRefresher
"""

import asyncio
import signal
from typing import Any

from roi.config import AppSettings, FxSettings
from roi.exchange.converter import ExchangeConverter
from roi.fx.oracle import FxOracle
from roi.fx.refresher import FxRefresher
from roi.fx.sources import CcxtPriceSource, CoinGeckoPriceSource, PriceSource
from roi.invest.engine import InvestmentEngine
from roi.invest.sweeper import AutoCompoundSweeper
from roi.ledger.precision import AssetPrecision
from roi.ledger.wallets import Ledger
from roi.logging import get_logger, setup_logging
from roi.portfolio import PortfolioService
from roi.service import LedgerService
from roi.settlement.payouts import PayoutRecorder
from roi.settlement.settler import Settlement
from roi.store.database import LedgerDatabase
from roi.store.migrations import run_migrations
from roi.store.repository import Store
from roi.users import UserDirectory


def create_price_source(settings: FxSettings) -> PriceSource:
    """Build the configured external price feed."""
    if settings.source == "ccxt":
        return CcxtPriceSource(
            exchange_id=settings.ccxt_exchange, timeout=settings.request_timeout
        )
    return CoinGeckoPriceSource(
        api_key=settings.coingecko_api_key.get_secret_value(),
        timeout=settings.request_timeout,
    )


async def build_components(
    settings: AppSettings,
    database: LedgerDatabase,
    price_source: PriceSource | None = None,
) -> dict[str, Any]:
    """Build all ledger components over a connected, migrated database.

    Args:
        settings: Application-wide settings.
        database: Connected database on which run_migrations() has run.
        price_source: Overrides the configured feed (tests pass a fake).

    Returns:
        Dict mapping component names to instances.
    """
    store = Store(database)
    precision = AssetPrecision(settings.ledger)
    ledger = Ledger(store, precision)

    source = price_source if price_source is not None else create_price_source(settings.fx)
    oracle = FxOracle(store, source, settings.fx.refreshed_assets)
    await oracle.load()

    users = UserDirectory(store)
    payouts = PayoutRecorder(store)
    converter = ExchangeConverter(store, ledger, oracle)
    settlement = Settlement(store, ledger, oracle, payouts, users)

    investments = InvestmentEngine(store, ledger, oracle, settings.invest.daily_rate)
    sweeper = AutoCompoundSweeper(
        store, settings.invest.daily_rate, settings.invest.sweep_interval
    )

    portfolio = PortfolioService(store, oracle, settings.ledger.tracked_assets)

    service = LedgerService(
        oracle=oracle,
        ledger=ledger,
        converter=converter,
        settlement=settlement,
        payouts=payouts,
        investments=investments,
        portfolio=portfolio,
        users=users,
    )

    refresher = FxRefresher(oracle, settings.fx.refresh_interval)

    return {
        "store": store,
        "ledger": ledger,
        "price_source": source,
        "oracle": oracle,
        "users": users,
        "payouts": payouts,
        "converter": converter,
        "settlement": settlement,
        "investments": investments,
        "sweeper": sweeper,
        "portfolio": portfolio,
        "service": service,
        "refresher": refresher,
    }


async def run() -> None:
    """Run the ledger's background tasks until a shutdown signal arrives."""
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("roi.main")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)

    async with LedgerDatabase(settings.database.path) as database:
        # Migrations run once, before any component is constructed
        applied = await run_migrations(database, settings.fx)
        logger.info("migrations_complete", applied=applied)

        components = await build_components(settings, database)
        refresher: FxRefresher = components["refresher"]
        sweeper: AutoCompoundSweeper = components["sweeper"]

        logger.info(
            "roi_ledger_starting",
            db_path=settings.database.path,
            fx_source=settings.fx.source,
            daily_rate=str(settings.invest.daily_rate),
        )

        await refresher.start()
        await sweeper.start()
        try:
            await stop_event.wait()
        finally:
            await sweeper.stop()
            await refresher.stop()
            await components["price_source"].close()
            logger.info("roi_ledger_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
