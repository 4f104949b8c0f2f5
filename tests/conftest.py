"""Shared test fixtures for the ROI ledger.

Every test gets a fresh, migrated SQLite database in tmp_path and a fake
price feed, so nothing touches the network.
"""

from collections.abc import AsyncIterator
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from roi.config import AppSettings
from roi.exchange.converter import ExchangeConverter
from roi.fx.oracle import FxOracle
from roi.fx.sources import PriceSource
from roi.invest.engine import InvestmentEngine
from roi.invest.sweeper import AutoCompoundSweeper
from roi.ledger.wallets import Ledger
from roi.main import build_components
from roi.service import LedgerService
from roi.settlement.payouts import PayoutRecorder
from roi.settlement.settler import Settlement
from roi.store.database import LedgerDatabase
from roi.store.migrations import run_migrations
from roi.store.repository import Store
from roi.users import UserDirectory


class FakePriceSource(PriceSource):
    """In-memory price feed; set ``error`` to make the next fetch fail."""

    name = "fake"

    def __init__(self, prices: dict[str, Decimal] | None = None) -> None:
        self.prices = dict(prices or {"TRX": Decimal("0.12"), "BTC": Decimal("65000")})
        self.error: Exception | None = None
        self.calls = 0
        self.closed = False

    async def fetch_usd_prices(self, assets: list[str]) -> dict[str, Decimal]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {a: self.prices[a] for a in assets if a in self.prices}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> AppSettings:
    """Return AppSettings with test defaults."""
    return AppSettings(log_level="DEBUG")


@pytest.fixture
def price_source() -> FakePriceSource:
    return FakePriceSource()


@pytest_asyncio.fixture
async def database(
    tmp_path: Path, settings: AppSettings
) -> AsyncIterator[LedgerDatabase]:
    """Connected, migrated database in a temp directory."""
    db = LedgerDatabase(str(tmp_path / "ledger.db"))
    await db.connect()
    await run_migrations(db, settings.fx)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def components(
    settings: AppSettings, database: LedgerDatabase, price_source: FakePriceSource
) -> dict[str, Any]:
    return await build_components(settings, database, price_source=price_source)


@pytest.fixture
def store(components: dict[str, Any]) -> Store:
    return components["store"]


@pytest.fixture
def ledger(components: dict[str, Any]) -> Ledger:
    return components["ledger"]


@pytest.fixture
def oracle(components: dict[str, Any]) -> FxOracle:
    return components["oracle"]


@pytest.fixture
def converter(components: dict[str, Any]) -> ExchangeConverter:
    return components["converter"]


@pytest.fixture
def settlement(components: dict[str, Any]) -> Settlement:
    return components["settlement"]


@pytest.fixture
def payouts(components: dict[str, Any]) -> PayoutRecorder:
    return components["payouts"]


@pytest.fixture
def users(components: dict[str, Any]) -> UserDirectory:
    return components["users"]


@pytest.fixture
def investments(components: dict[str, Any]) -> InvestmentEngine:
    return components["investments"]


@pytest.fixture
def sweeper(components: dict[str, Any]) -> AutoCompoundSweeper:
    return components["sweeper"]


@pytest.fixture
def service(components: dict[str, Any]) -> LedgerService:
    return components["service"]
