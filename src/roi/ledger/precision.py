"""Per-asset decimal precision.

Fiat and stable assets are kept to cents, volatile assets to six decimals.
Rounding is half-up so that a value exactly halfway rounds away from zero.
"""

from decimal import ROUND_HALF_UP, Decimal

from roi.config import LedgerSettings


def quantize(value: Decimal, decimals: int) -> Decimal:
    """Round a value half-up to a fixed number of decimals."""
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def round_usd(value: Decimal) -> Decimal:
    """Round a USD amount to cents."""
    return quantize(value, 2)


class AssetPrecision:
    """Resolves and applies the fixed precision of each asset."""

    def __init__(self, settings: LedgerSettings | None = None) -> None:
        settings = settings or LedgerSettings()
        self._stable = frozenset(a.upper() for a in settings.stable_assets)
        self._stable_decimals = settings.stable_decimals
        self._volatile_decimals = settings.volatile_decimals

    def decimals(self, asset: str) -> int:
        return self._stable_decimals if asset in self._stable else self._volatile_decimals

    def unit(self, asset: str) -> Decimal:
        """Smallest representable amount of an asset."""
        return Decimal(1).scaleb(-self.decimals(asset))

    def round(self, asset: str, amount: Decimal) -> Decimal:
        return quantize(amount, self.decimals(asset))
