"""External market price sources for the FX oracle.

A source returns USD prices for a list of volatile assets or raises
PriceFeedError. Sources never touch ledger state; the oracle decides what
to do with the prices (or the failure).
"""

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import ccxt.async_support as ccxt_async
from ccxt.base.errors import BaseError as CcxtError

from roi.exceptions import PriceFeedError
from roi.logging import get_logger

logger = get_logger(__name__)

# Static mapping from asset symbols to CoinGecko coin IDs
ASSET_TO_COINGECKO: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "TRX": "tron",
    "SOL": "solana",
    "XRP": "ripple",
    "BNB": "binancecoin",
    "DOGE": "dogecoin",
    "LTC": "litecoin",
    "ADA": "cardano",
}

COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"


def _to_decimal(raw: object, asset: str) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise PriceFeedError(f"No price for {asset}")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise PriceFeedError(f"Malformed price for {asset}: {raw!r}") from exc


class PriceSource(ABC):
    """Abstract pull-based USD price feed."""

    name: str = "abstract"

    @abstractmethod
    async def fetch_usd_prices(self, assets: list[str]) -> dict[str, Decimal]:
        """Return the current USD price of each asset.

        Raises:
            PriceFeedError: On network failure or a malformed response.
        """
        ...

    async def close(self) -> None:
        """Release network resources (no-op by default)."""


class CoinGeckoPriceSource(PriceSource):
    """USD prices from the CoinGecko simple-price endpoint.

    Uses urllib.request (stdlib) on a worker thread so the event loop is
    never blocked by the HTTP call.

    Args:
        api_key: Optional CoinGecko demo API key for higher rate limits.
        timeout: HTTP timeout in seconds.
    """

    name = "coingecko"

    def __init__(self, api_key: str | None = None, timeout: float = 10.0) -> None:
        self._api_key = api_key or None
        self._timeout = timeout

    def _fetch(self, coin_ids: list[str]) -> dict:
        params = {"ids": ",".join(coin_ids), "vs_currencies": "usd"}
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key
        url = f"{COINGECKO_PRICE_URL}?{urllib.parse.urlencode(params)}"

        headers = {"Accept": "application/json", "User-Agent": "RoiLedger/1.0"}
        req = urllib.request.Request(url, headers=headers)
        with urllib.request.urlopen(req, timeout=self._timeout) as resp:
            return json.loads(resp.read())

    async def fetch_usd_prices(self, assets: list[str]) -> dict[str, Decimal]:
        unknown = [a for a in assets if a not in ASSET_TO_COINGECKO]
        if unknown:
            raise PriceFeedError(f"No CoinGecko id for assets: {', '.join(unknown)}")

        coin_ids = [ASSET_TO_COINGECKO[a] for a in assets]
        try:
            data = await asyncio.to_thread(self._fetch, coin_ids)
        except (OSError, ValueError) as exc:
            raise PriceFeedError(f"CoinGecko request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise PriceFeedError("CoinGecko response is not an object")

        prices: dict[str, Decimal] = {}
        for asset, coin_id in zip(assets, coin_ids):
            entry = data.get(coin_id)
            if not isinstance(entry, dict):
                raise PriceFeedError(f"CoinGecko response missing {coin_id}")
            prices[asset] = _to_decimal(entry.get("usd"), asset)

        logger.debug("coingecko_prices_fetched", count=len(prices))
        return prices


class CcxtPriceSource(PriceSource):
    """USD prices from a ccxt exchange's ``<ASSET>/USDT`` spot tickers.

    USDT is pegged to USD in the ledger, so the last traded price against
    USDT is taken as the USD price.

    Args:
        exchange_id: ccxt exchange id (e.g. "binance", "bybit").
        quote: Quote asset of the tickers.
        timeout: Request timeout in seconds.
    """

    name = "ccxt"

    def __init__(
        self,
        exchange_id: str = "binance",
        quote: str = "USDT",
        timeout: float = 10.0,
    ) -> None:
        exchange_class = getattr(ccxt_async, exchange_id)
        self._exchange = exchange_class(
            {"enableRateLimit": True, "timeout": int(timeout * 1000)}
        )
        self._quote = quote

    async def fetch_usd_prices(self, assets: list[str]) -> dict[str, Decimal]:
        symbols = {asset: f"{asset}/{self._quote}" for asset in assets}
        try:
            tickers = await self._exchange.fetch_tickers(list(symbols.values()))
        except CcxtError as exc:
            raise PriceFeedError(f"{self._exchange.id} tickers failed: {exc}") from exc

        prices: dict[str, Decimal] = {}
        for asset, symbol in symbols.items():
            ticker = tickers.get(symbol)
            if not ticker:
                raise PriceFeedError(f"No ticker for {symbol}")
            prices[asset] = _to_decimal(ticker.get("last"), asset)
        return prices

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
