"""Append-only audit log of ROI settlements.

Payouts are written inside the settlement's transaction and are never
updated or deleted.
"""

import time
from decimal import Decimal

from roi.models import Payout
from roi.store.repository import Store, Transaction


class PayoutRecorder:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def record_in(
        self,
        tx: Transaction,
        user_id: int,
        plan_id: str,
        currency: str,
        amount: Decimal,
        fx_rate_to_usd: Decimal | None = None,
        usd_amount: Decimal | None = None,
    ) -> Payout:
        """Append a payout; ``converted`` is derived from the USD fields."""
        payout = Payout(
            user_id=user_id,
            plan_id=plan_id,
            original_currency=currency,
            original_amount=amount,
            fx_rate_to_usd=fx_rate_to_usd,
            usd_amount=usd_amount,
            converted=usd_amount is not None,
            created_at=time.time(),
        )
        return await tx.insert_payout(payout)

    async def history(self, user_id: int) -> list[Payout]:
        """Return a user's payouts, oldest first."""
        async with self._store.transaction(write=False) as tx:
            return await tx.list_payouts(user_id)
