"""Tests for the FX oracle cache, overrides and market refresh."""

from decimal import Decimal

import pytest

from roi.exceptions import InvalidInput, MissingFxRate, UnknownPair
from roi.fx.oracle import FxOracle, parse_pair
from roi.store.repository import Store


class TestParsePair:
    @pytest.mark.parametrize("pair,asset", [("BTC-USD", "BTC"), ("USDT-USD", "USDT")])
    def test_valid_pairs(self, pair: str, asset: str) -> None:
        assert parse_pair(pair) == asset

    @pytest.mark.parametrize("pair", ["BTC", "BTC-EUR", "btc-usd", "-USD", "B-USD", ""])
    def test_malformed_pairs(self, pair: str) -> None:
        with pytest.raises(InvalidInput):
            parse_pair(pair)


class TestReads:
    """Cache lookups after load()."""

    def test_pegs_are_one(self, oracle: FxOracle) -> None:
        assert oracle.get_rate("USD-USD") == Decimal("1")
        assert oracle.get_rate("USDT-USD") == Decimal("1")
        assert oracle.rate_for("USDT") == Decimal("1")

    def test_seeded_rates_are_loaded(self, oracle: FxOracle) -> None:
        assert oracle.get_rate("TRX-USD") == Decimal("0.1")
        assert oracle.get_rate("BTC-USD") == Decimal("68000")

    def test_unknown_pair(self, oracle: FxOracle) -> None:
        with pytest.raises(UnknownPair):
            oracle.get_rate("ETH-USD")

    def test_missing_rate_for_asset(self, oracle: FxOracle) -> None:
        with pytest.raises(MissingFxRate):
            oracle.rate_for("ETH")

    def test_to_usd_and_back(self, oracle: FxOracle) -> None:
        assert oracle.to_usd("TRX", Decimal("250")) == Decimal("25.0")
        assert oracle.to_usd("USD", Decimal("3.21")) == Decimal("3.21")
        assert oracle.from_usd("BTC", Decimal("68000")) == Decimal("1")

    def test_rates_returns_a_copy(self, oracle: FxOracle) -> None:
        snapshot = oracle.rates()
        snapshot["BTC-USD"] = Decimal("1")
        assert oracle.get_rate("BTC-USD") == Decimal("68000")


class TestSetRate:
    """Administrative overrides."""

    @pytest.mark.asyncio
    async def test_override_is_cached_and_persisted(
        self, oracle: FxOracle, store: Store
    ) -> None:
        await oracle.set_rate("ETH-USD", Decimal("3200.5"))

        assert oracle.get_rate("ETH-USD") == Decimal("3200.5")
        async with store.transaction(write=False) as tx:
            stored = await tx.list_rates()
        assert stored["ETH-USD"] == Decimal("3200.5")

    @pytest.mark.asyncio
    async def test_override_survives_reload(self, oracle: FxOracle, store: Store) -> None:
        await oracle.set_rate("BTC-USD", Decimal("70000"))

        fresh = FxOracle(store)
        await fresh.load()

        assert fresh.get_rate("BTC-USD") == Decimal("70000")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1"), Decimal("NaN")])
    async def test_non_positive_rate_rejected(self, oracle: FxOracle, rate: Decimal) -> None:
        with pytest.raises(InvalidInput):
            await oracle.set_rate("BTC-USD", rate)
        assert oracle.get_rate("BTC-USD") == Decimal("68000")

    @pytest.mark.asyncio
    async def test_peg_cannot_move(self, oracle: FxOracle) -> None:
        with pytest.raises(InvalidInput, match="pegged"):
            await oracle.set_rate("USDT-USD", Decimal("0.99"))
        assert await oracle.set_rate("USDT-USD", Decimal("1")) == Decimal("1")

    @pytest.mark.asyncio
    async def test_malformed_pair_rejected(self, oracle: FxOracle) -> None:
        with pytest.raises(InvalidInput):
            await oracle.set_rate("BTCUSD", Decimal("1"))


class TestRefresh:
    """Market refresh through the fake price source."""

    @pytest.mark.asyncio
    async def test_success_updates_covered_pairs(self, oracle: FxOracle, price_source) -> None:
        result = await oracle.refresh()

        assert result.ok
        assert result.rates["TRX-USD"] == Decimal("0.12")
        assert oracle.get_rate("TRX-USD") == Decimal("0.12")
        assert oracle.get_rate("BTC-USD") == Decimal("65000")
        assert oracle.get_rate("USDT-USD") == Decimal("1")
        assert price_source.calls == 1

    @pytest.mark.asyncio
    async def test_feed_error_keeps_last_good_rates(
        self, oracle: FxOracle, price_source
    ) -> None:
        price_source.error = ConnectionError("timeout")

        result = await oracle.refresh()

        assert not result.ok
        assert "timeout" in result.error
        assert oracle.get_rate("BTC-USD") == Decimal("68000")

    @pytest.mark.asyncio
    async def test_partial_feed_writes_nothing(
        self, oracle: FxOracle, price_source, store: Store
    ) -> None:
        del price_source.prices["BTC"]

        result = await oracle.refresh()

        assert not result.ok
        assert oracle.get_rate("TRX-USD") == Decimal("0.1")
        async with store.transaction(write=False) as tx:
            stored = await tx.list_rates()
        assert stored["TRX-USD"] == Decimal("0.1")

    @pytest.mark.asyncio
    async def test_non_positive_price_writes_nothing(
        self, oracle: FxOracle, price_source
    ) -> None:
        price_source.prices["TRX"] = Decimal("0")

        result = await oracle.refresh()

        assert not result.ok
        assert oracle.get_rate("BTC-USD") == Decimal("68000")

    @pytest.mark.asyncio
    async def test_without_source_is_a_failure(self, store: Store) -> None:
        oracle = FxOracle(store)
        await oracle.load()

        result = await oracle.refresh()

        assert not result.ok
        assert oracle.get_rate("BTC-USD") == Decimal("68000")

    @pytest.mark.asyncio
    async def test_pegged_assets_are_never_refreshed(self, store: Store, price_source) -> None:
        oracle = FxOracle(store, price_source, refreshed_assets=["USDT", "BTC"])
        await oracle.load()

        assert oracle.refreshed_assets == ["BTC"]
