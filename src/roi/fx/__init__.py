"""FX oracle: cached USD rates, external price sources, and the refresh loop."""

from roi.fx.oracle import FxOracle, RefreshResult, parse_pair
from roi.fx.refresher import FxRefresher
from roi.fx.sources import CcxtPriceSource, CoinGeckoPriceSource, PriceSource

__all__ = [
    "CcxtPriceSource",
    "CoinGeckoPriceSource",
    "FxOracle",
    "FxRefresher",
    "PriceSource",
    "RefreshResult",
    "parse_pair",
]
