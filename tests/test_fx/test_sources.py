"""Tests for the external price sources (network mocked)."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from ccxt.base.errors import NetworkError

from roi.exceptions import PriceFeedError
from roi.fx.sources import CcxtPriceSource, CoinGeckoPriceSource


class TestCoinGecko:
    @pytest.mark.asyncio
    async def test_prices_are_mapped_back_to_assets(self) -> None:
        source = CoinGeckoPriceSource()
        payload = {"tron": {"usd": 0.1234}, "bitcoin": {"usd": 64999.5}}

        with patch.object(source, "_fetch", return_value=payload) as fetch:
            prices = await source.fetch_usd_prices(["TRX", "BTC"])

        fetch.assert_called_once_with(["tron", "bitcoin"])
        assert prices == {"TRX": Decimal("0.1234"), "BTC": Decimal("64999.5")}

    @pytest.mark.asyncio
    async def test_network_error_becomes_price_feed_error(self) -> None:
        source = CoinGeckoPriceSource()

        with patch.object(source, "_fetch", side_effect=OSError("unreachable")):
            with pytest.raises(PriceFeedError, match="unreachable"):
                await source.fetch_usd_prices(["BTC"])

    @pytest.mark.asyncio
    async def test_missing_coin_is_an_error(self) -> None:
        source = CoinGeckoPriceSource()

        with patch.object(source, "_fetch", return_value={"bitcoin": {"usd": 1}}):
            with pytest.raises(PriceFeedError, match="tron"):
                await source.fetch_usd_prices(["BTC", "TRX"])

    @pytest.mark.asyncio
    async def test_unmapped_asset_is_an_error(self) -> None:
        source = CoinGeckoPriceSource()
        with pytest.raises(PriceFeedError, match="FOO"):
            await source.fetch_usd_prices(["FOO"])


class TestCcxt:
    @pytest.fixture
    def exchange(self) -> MagicMock:
        exchange = MagicMock()
        exchange.id = "binance"
        exchange.fetch_tickers = AsyncMock()
        exchange.close = AsyncMock()
        return exchange

    @pytest.fixture
    def source(self, exchange: MagicMock) -> CcxtPriceSource:
        with patch("roi.fx.sources.ccxt_async") as ccxt_module:
            ccxt_module.binance.return_value = exchange
            return CcxtPriceSource("binance")

    @pytest.mark.asyncio
    async def test_last_price_is_used(self, source: CcxtPriceSource, exchange: MagicMock) -> None:
        exchange.fetch_tickers.return_value = {
            "TRX/USDT": {"last": 0.125},
            "BTC/USDT": {"last": 66000.1},
        }

        prices = await source.fetch_usd_prices(["TRX", "BTC"])

        exchange.fetch_tickers.assert_awaited_once_with(["TRX/USDT", "BTC/USDT"])
        assert prices == {"TRX": Decimal("0.125"), "BTC": Decimal("66000.1")}

    @pytest.mark.asyncio
    async def test_exchange_error_becomes_price_feed_error(
        self, source: CcxtPriceSource, exchange: MagicMock
    ) -> None:
        exchange.fetch_tickers.side_effect = NetworkError("down")

        with pytest.raises(PriceFeedError):
            await source.fetch_usd_prices(["BTC"])

    @pytest.mark.asyncio
    async def test_missing_ticker_is_an_error(
        self, source: CcxtPriceSource, exchange: MagicMock
    ) -> None:
        exchange.fetch_tickers.return_value = {"BTC/USDT": {"last": None}}

        with pytest.raises(PriceFeedError):
            await source.fetch_usd_prices(["BTC"])

    @pytest.mark.asyncio
    async def test_close_releases_exchange(
        self, source: CcxtPriceSource, exchange: MagicMock
    ) -> None:
        await source.close()
        exchange.close.assert_awaited_once()
