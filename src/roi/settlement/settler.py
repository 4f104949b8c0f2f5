"""ROI payout settlement.

Resolves a payout event into either a native-currency credit or a
USD-converted credit, according to the user's standing preference. The
wallet credit and the payout record are written in one transaction.
"""

from decimal import Decimal

from roi.exceptions import InvalidInput
from roi.fx.oracle import FxOracle
from roi.ledger.precision import round_usd
from roi.ledger.wallets import Ledger
from roi.logging import get_logger
from roi.models import USD, SettlementResult
from roi.settlement.payouts import PayoutRecorder
from roi.store.repository import Store
from roi.users import UserDirectory

logger = get_logger(__name__)


class Settlement:
    """Credits ROI payouts and records them.

    Args:
        store: Ledger store providing transactions.
        ledger: Wallet bookkeeping for the credit.
        oracle: FX rates for USD conversion.
        payouts: Audit log of settlements.
        users: Directory holding the convert-to-USD preference.
    """

    def __init__(
        self,
        store: Store,
        ledger: Ledger,
        oracle: FxOracle,
        payouts: PayoutRecorder,
        users: UserDirectory,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._oracle = oracle
        self._payouts = payouts
        self._users = users

    async def settle(
        self, user_id: int, plan_id: str, amount: Decimal, currency: str
    ) -> SettlementResult:
        """Settle one ROI payout.

        Raises:
            InvalidInput: Non-positive amount or empty plan id.
            UserNotFound: Unknown user.
            MissingFxRate: USD conversion requested but ``currency`` has no rate.
        """
        if amount <= 0:
            raise InvalidInput(f"Payout amount must be positive, got {amount}")
        if not plan_id:
            raise InvalidInput("plan_id required")

        async with self._store.transaction() as tx:
            user = await self._users.require_in(tx, user_id)

            if not user.convert_to_usd:
                balance = await self._ledger.credit_in(tx, user_id, currency, amount)
                payout = await self._payouts.record_in(
                    tx, user_id, plan_id, currency, amount
                )
                result = SettlementResult(
                    converted=False,
                    credited_asset=currency,
                    credited_amount=self._ledger.precision.round(currency, amount),
                    new_balance=balance,
                    payout=payout,
                )
            else:
                rate = self._oracle.rate_for(currency)
                usd_amount = round_usd(amount * rate)
                balance = await self._ledger.credit_in(tx, user_id, USD, usd_amount)
                payout = await self._payouts.record_in(
                    tx,
                    user_id,
                    plan_id,
                    currency,
                    amount,
                    fx_rate_to_usd=rate,
                    usd_amount=usd_amount,
                )
                result = SettlementResult(
                    converted=True,
                    credited_asset=USD,
                    credited_amount=usd_amount,
                    new_balance=balance,
                    payout=payout,
                    rate=rate,
                )

        logger.info(
            "roi_settled",
            user_id=user_id,
            plan_id=plan_id,
            currency=currency,
            amount=str(amount),
            converted=result.converted,
            credited=str(result.credited_amount),
        )
        return result
