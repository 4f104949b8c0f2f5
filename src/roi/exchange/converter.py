"""Asset-to-asset conversion through a USD bridge.

The source amount is valued in USD, the fee is taken in USD, and the net
USD value is priced back into the target asset. Both rates are resolved
before the transaction starts, and the debit precedes any arithmetic that
could fail, so a failed conversion never credits anything.
"""

from decimal import Decimal

from roi.exceptions import InvalidInput
from roi.fx.oracle import FxOracle
from roi.ledger.wallets import Ledger
from roi.logging import get_logger
from roi.models import USD, ConversionLeg, ConversionResult, fx_pair
from roi.store.repository import Store

logger = get_logger(__name__)

_HUNDRED = Decimal("100")


class ExchangeConverter:
    """Converts wallet balances between assets at cached FX rates.

    Args:
        store: Ledger store providing transactions.
        ledger: Wallet bookkeeping for the debit and credit legs.
        oracle: FX rates for the USD bridge.
    """

    def __init__(self, store: Store, ledger: Ledger, oracle: FxOracle) -> None:
        self._store = store
        self._ledger = ledger
        self._oracle = oracle

    async def convert(
        self,
        user_id: int,
        from_asset: str,
        to_asset: str,
        amount: Decimal,
        fee_pct: Decimal = Decimal("0"),
    ) -> ConversionResult:
        """Debit ``amount`` of ``from_asset`` and credit its net value in ``to_asset``.

        Converting an asset into itself is allowed; it only costs the fee.

        Raises:
            InvalidInput: Non-positive amount, fee outside [0, 100), or a
                target amount that rounds to zero.
            MissingFxRate: Either asset has no rate.
            InsufficientBalance: The source wallet holds less than ``amount``.
        """
        if amount <= 0:
            raise InvalidInput(f"Conversion amount must be positive, got {amount}")
        if fee_pct < 0 or fee_pct >= _HUNDRED:
            raise InvalidInput(f"Fee must be in [0, 100), got {fee_pct}")

        precision = self._ledger.precision
        from_rate = self._oracle.rate_for(from_asset)
        to_rate = self._oracle.rate_for(to_asset)
        amount = precision.round(from_asset, amount)

        async with self._store.transaction() as tx:
            source_balance = await self._ledger.debit_in(tx, user_id, from_asset, amount)

            gross_usd = amount * from_rate
            net_usd = gross_usd * (1 - fee_pct / _HUNDRED) if fee_pct else gross_usd
            raw_target = net_usd if to_asset == USD else net_usd / to_rate
            target_amount = precision.round(to_asset, raw_target)
            if target_amount <= 0:
                raise InvalidInput(
                    f"{amount} {from_asset} is worth less than one unit of {to_asset}"
                )

            target_balance = await self._ledger.credit_in(
                tx, user_id, to_asset, target_amount
            )

        logger.info(
            "conversion_executed",
            user_id=user_id,
            from_asset=from_asset,
            to_asset=to_asset,
            amount=str(amount),
            target_amount=str(target_amount),
            fee_pct=str(fee_pct),
            net_usd=str(net_usd),
        )

        return ConversionResult(
            user_id=user_id,
            source=ConversionLeg(
                asset=from_asset, amount=amount, pair=fx_pair(from_asset), rate=from_rate
            ),
            target=ConversionLeg(
                asset=to_asset, amount=target_amount, pair=fx_pair(to_asset), rate=to_rate
            ),
            gross_usd=gross_usd,
            net_usd=net_usd,
            fee_pct=fee_pct,
            source_balance=source_balance,
            target_balance=target_balance,
        )
