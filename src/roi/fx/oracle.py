"""Cached asset-to-USD rate table.

The oracle is the single owner of the FX table. Readers get rates from the
in-memory cache; writers (administrative overrides and market refreshes)
persist first and only then update the cache, so the cache never holds a
rate the store does not.

USD-USD and USDT-USD are pegged to 1 and are never refreshed or overridden.
"""

import asyncio
import re
from dataclasses import dataclass, field
from decimal import Decimal

from roi.exceptions import InvalidInput, LedgerError, MissingFxRate, UnknownPair
from roi.fx.sources import PriceSource
from roi.logging import get_logger
from roi.models import PEGGED_ASSETS, USD, fx_pair
from roi.store.repository import Store

logger = get_logger(__name__)

_PAIR_RE = re.compile(r"^([A-Z0-9]{2,10})-USD$")
_ONE = Decimal("1")
PEGGED_RATES: dict[str, Decimal] = {fx_pair(asset): _ONE for asset in PEGGED_ASSETS}


def parse_pair(pair: str) -> str:
    """Return the base asset of a ``<ASSET>-USD`` pair.

    Raises:
        InvalidInput: If the pair is not of that form.
    """
    match = _PAIR_RE.match(pair)
    if match is None:
        raise InvalidInput(f"Pair must look like 'BTC-USD', got {pair!r}")
    return match.group(1)


@dataclass
class RefreshResult:
    """Outcome of one market refresh.

    A failed result means the cache was left exactly as it was.
    """

    ok: bool
    rates: dict[str, Decimal] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def success(cls, rates: dict[str, Decimal]) -> "RefreshResult":
        return cls(ok=True, rates=rates)

    @classmethod
    def failure(cls, error: str) -> "RefreshResult":
        return cls(ok=False, error=error)


class FxOracle:
    """Process-wide FX rate cache backed by the ledger store.

    Args:
        store: Ledger store the rates are persisted in.
        source: External price feed used by refresh(); None disables refresh.
        refreshed_assets: Volatile assets covered by refresh().
    """

    def __init__(
        self,
        store: Store,
        source: PriceSource | None = None,
        refreshed_assets: list[str] | None = None,
    ) -> None:
        self._store = store
        self._source = source
        self._refreshed_assets = [
            a for a in (refreshed_assets or []) if a not in PEGGED_ASSETS
        ]
        self._rates: dict[str, Decimal] = dict(PEGGED_RATES)
        self._write_lock = asyncio.Lock()

    @property
    def refreshed_assets(self) -> list[str]:
        return list(self._refreshed_assets)

    async def load(self) -> None:
        """Populate the cache from the store (call once at startup)."""
        async with self._store.transaction(write=False) as tx:
            stored = await tx.list_rates()
        self._rates = {**stored, **PEGGED_RATES}
        logger.info("fx_rates_loaded", count=len(self._rates))

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    def get_rate(self, pair: str) -> Decimal:
        """Return the cached rate for a pair.

        Raises:
            UnknownPair: If the pair was never set.
        """
        rate = self._rates.get(pair)
        if rate is None:
            raise UnknownPair(f"No FX rate for {pair}")
        return rate

    def rates(self) -> dict[str, Decimal]:
        return dict(self._rates)

    def rate_for(self, asset: str) -> Decimal:
        """Return the USD rate of an asset (1 for USD and USDT).

        Raises:
            MissingFxRate: If the asset is not pegged and has no rate.
        """
        if asset in PEGGED_ASSETS:
            return _ONE
        rate = self._rates.get(fx_pair(asset))
        if rate is None:
            raise MissingFxRate(f"No FX rate for {fx_pair(asset)}")
        return rate

    def to_usd(self, asset: str, amount: Decimal) -> Decimal:
        """Unrounded USD value of an asset amount."""
        if asset == USD:
            return amount
        return amount * self.rate_for(asset)

    def from_usd(self, asset: str, usd: Decimal) -> Decimal:
        """Unrounded asset amount worth ``usd`` dollars."""
        if asset == USD:
            return usd
        return usd / self.rate_for(asset)

    # ──────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────

    async def set_rate(self, pair: str, rate: Decimal) -> Decimal:
        """Administrative override of a single rate.

        Raises:
            InvalidInput: Malformed pair, non-positive rate, or an attempt to
                move a pegged pair away from 1.
        """
        asset = parse_pair(pair)
        if not rate.is_finite() or rate <= 0:
            raise InvalidInput(f"Rate must be positive, got {rate}")
        if asset in PEGGED_ASSETS and rate != _ONE:
            raise InvalidInput(f"{pair} is pegged to 1")

        async with self._write_lock:
            async with self._store.transaction() as tx:
                await tx.save_rates({pair: rate})
            self._rates[pair] = rate

        logger.info("fx_rate_set", pair=pair, rate=str(rate))
        return rate

    async def refresh(self) -> RefreshResult:
        """Fetch market prices for the covered assets and update their rates.

        All-or-nothing: if the feed fails, returns malformed data, or any
        price is not positive, nothing is written and the cache keeps its
        last good values. Feed errors are returned, never raised.
        """
        if self._source is None or not self._refreshed_assets:
            return RefreshResult.failure("no price source configured")

        # Network call happens before any ledger transaction is opened
        try:
            prices = await self._source.fetch_usd_prices(self._refreshed_assets)
        except Exception as exc:
            return RefreshResult.failure(f"{type(exc).__name__}: {exc}")

        rates: dict[str, Decimal] = {}
        for asset in self._refreshed_assets:
            price = prices.get(asset)
            if price is None:
                return RefreshResult.failure(f"feed omitted {asset}")
            if not price.is_finite() or price <= 0:
                return RefreshResult.failure(f"non-positive price for {asset}: {price}")
            rates[fx_pair(asset)] = price
        rates.update(PEGGED_RATES)

        async with self._write_lock:
            try:
                async with self._store.transaction() as tx:
                    await tx.save_rates(rates)
            except LedgerError as exc:
                return RefreshResult.failure(f"persist failed: {exc}")
            self._rates.update(rates)

        logger.info(
            "fx_rates_refreshed",
            source=self._source.name,
            rates={pair: str(rate) for pair, rate in rates.items()},
        )
        return RefreshResult.success(rates)
