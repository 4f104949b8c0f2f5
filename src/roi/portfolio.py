"""USD valuation of a user's wallets.

Derived, read-only: sums the USD equivalent of every wallet and gives each
asset's share of the total. Assets without an FX rate are valued at zero
and flagged ``priced=False`` rather than failing the whole view.
"""

from decimal import Decimal

from roi.exceptions import MissingFxRate
from roi.fx.oracle import FxOracle
from roi.ledger.precision import round_usd
from roi.logging import get_logger
from roi.models import Portfolio, PortfolioRow
from roi.store.repository import Store

logger = get_logger(__name__)

_HUNDRED = Decimal("100")


class PortfolioService:
    """Builds portfolio breakdowns.

    Args:
        store: Ledger store to read wallets from.
        oracle: FX rates for valuation.
        tracked_assets: Assets always listed, even when the user holds none.
    """

    def __init__(
        self, store: Store, oracle: FxOracle, tracked_assets: list[str] | None = None
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._tracked_assets = list(tracked_assets or [])

    async def portfolio(self, user_id: int) -> Portfolio:
        async with self._store.transaction(write=False) as tx:
            wallets = await tx.list_wallets(user_id)

        balances = {asset: Decimal("0") for asset in self._tracked_assets}
        for wallet in wallets:
            balances[wallet.asset] = wallet.available

        rows: list[PortfolioRow] = []
        for asset, available in balances.items():
            try:
                usd = round_usd(self._oracle.to_usd(asset, available))
                priced = True
            except MissingFxRate:
                logger.warning("portfolio_asset_unpriced", user_id=user_id, asset=asset)
                usd = Decimal("0.00")
                priced = False
            rows.append(PortfolioRow(asset=asset, available=available, usd=usd, priced=priced))

        total = round_usd(sum((row.usd for row in rows), Decimal("0")))
        for row in rows:
            row.percent = round_usd(row.usd / total * _HUNDRED) if total else Decimal("0")

        return Portfolio(user_id=user_id, total_usd=total, rows=rows)
