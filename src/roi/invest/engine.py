"""Investment accrual engine.

Owns per-user investment records: USD principal, the auto-compound flag, and
the accrual window. The window is open (``window_start`` set) exactly while
principal is positive:

- deposit opens the window, or restarts it if already open; accrual from
  before the deposit is not realized.
- reinvest folds accrual into principal and restarts the window.
- claim pays accrual to the USD wallet and restarts the window; principal
  is unchanged.
- the sweeper (see :mod:`roi.invest.sweeper`) advances the window by whole
  days without restarting it.
"""

import time
from decimal import Decimal

from roi.exceptions import InvalidInput, NoActiveAccrual
from roi.fx.oracle import FxOracle
from roi.invest.accrual import accrued, seconds_to_next
from roi.ledger.precision import round_usd
from roi.ledger.wallets import Ledger
from roi.logging import get_logger
from roi.models import USD, FoldResult, InvestmentRecord, InvestmentStatus
from roi.store.repository import Store, Transaction

logger = get_logger(__name__)


class InvestmentEngine:
    """Deposit, status, reinvest, claim, and auto-compound configuration.

    Every operation takes an optional ``now`` (epoch seconds) so callers and
    tests can supply the clock; it defaults to ``time.time()``.

    Args:
        store: Ledger store providing transactions.
        ledger: Wallet bookkeeping (deposit debit, claim credit).
        oracle: FX rates to value deposits in USD.
        daily_rate: Simple interest per day (0.015 = 1.5%).
    """

    def __init__(
        self,
        store: Store,
        ledger: Ledger,
        oracle: FxOracle,
        daily_rate: Decimal = Decimal("0.015"),
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._oracle = oracle
        self._daily_rate = daily_rate

    @property
    def daily_rate(self) -> Decimal:
        return self._daily_rate

    def project(self, record: InvestmentRecord, now: float) -> InvestmentStatus:
        """Read-only status of a record at ``now``."""
        if not record.is_accruing:
            return InvestmentStatus(
                user_id=record.user_id,
                principal=record.principal,
                daily_rate=self._daily_rate,
                accrued=Decimal("0.00"),
                auto_compound=record.auto_compound,
                window_start=None,
                seconds_to_next=None,
            )
        return InvestmentStatus(
            user_id=record.user_id,
            principal=record.principal,
            daily_rate=self._daily_rate,
            accrued=round_usd(accrued(record, self._daily_rate, now)),
            auto_compound=record.auto_compound,
            window_start=record.window_start,
            seconds_to_next=seconds_to_next(record.window_start, now),  # type: ignore[arg-type]
        )

    async def deposit(
        self, user_id: int, asset: str, amount: Decimal, now: float | None = None
    ) -> InvestmentStatus:
        """Move ``amount`` of ``asset`` from the wallet into USD principal.

        Raises:
            InvalidInput: Amount is not positive or is worth less than a cent.
            MissingFxRate: The asset has no rate.
            InsufficientBalance: The wallet holds less than ``amount``.
        """
        now = time.time() if now is None else now
        if amount <= 0:
            raise InvalidInput(f"Investment amount must be positive, got {amount}")

        amount = self._ledger.precision.round(asset, amount)
        usd_value = round_usd(self._oracle.to_usd(asset, amount))
        if usd_value <= 0:
            raise InvalidInput(f"{amount} {asset} is worth less than 0.01 USD")

        async with self._store.transaction() as tx:
            await self._ledger.debit_in(tx, user_id, asset, amount)
            record = await tx.get_investment(user_id)
            record.principal = round_usd(record.principal + usd_value)
            record.window_start = now
            await tx.save_investment(record)

        logger.info(
            "investment_deposited",
            user_id=user_id,
            asset=asset,
            amount=str(amount),
            usd_value=str(usd_value),
            principal=str(record.principal),
        )
        return self.project(record, now)

    async def status(self, user_id: int, now: float | None = None) -> InvestmentStatus:
        now = time.time() if now is None else now
        async with self._store.transaction(write=False) as tx:
            record = await tx.get_investment(user_id)
        return self.project(record, now)

    async def _load_accruing(self, tx: Transaction, user_id: int) -> InvestmentRecord:
        record = await tx.get_investment(user_id)
        if not record.is_accruing:
            raise NoActiveAccrual(f"User {user_id} has no active accrual window")
        return record

    async def reinvest(self, user_id: int, now: float | None = None) -> FoldResult:
        """Fold accrued interest into principal and restart the window.

        Raises:
            NoActiveAccrual: The accrual timer is inactive.
        """
        now = time.time() if now is None else now
        async with self._store.transaction() as tx:
            record = await self._load_accruing(tx, user_id)
            interest = round_usd(accrued(record, self._daily_rate, now))
            record.principal = round_usd(record.principal + interest)
            record.window_start = now
            await tx.save_investment(record)

        logger.info(
            "investment_reinvested",
            user_id=user_id,
            interest=str(interest),
            principal=str(record.principal),
        )
        return FoldResult(amount=interest, status=self.project(record, now))

    async def claim(self, user_id: int, now: float | None = None) -> FoldResult:
        """Pay accrued interest to the USD wallet and restart the window.

        Principal is unchanged. A claim that has accrued less than a cent
        credits nothing but still restarts the window.

        Raises:
            NoActiveAccrual: The accrual timer is inactive.
        """
        now = time.time() if now is None else now
        async with self._store.transaction() as tx:
            record = await self._load_accruing(tx, user_id)
            interest = round_usd(accrued(record, self._daily_rate, now))
            if interest > 0:
                usd_balance = await self._ledger.credit_in(tx, user_id, USD, interest)
            else:
                usd_balance = (await tx.get_wallet(user_id, USD)).available
            record.window_start = now
            await tx.save_investment(record)

        logger.info(
            "investment_claimed",
            user_id=user_id,
            interest=str(interest),
            usd_balance=str(usd_balance),
        )
        return FoldResult(
            amount=interest, status=self.project(record, now), usd_balance=usd_balance
        )

    async def set_auto_compound(
        self, user_id: int, enabled: bool, now: float | None = None
    ) -> InvestmentStatus:
        """Toggle auto-compounding; the accrual window is not touched."""
        now = time.time() if now is None else now
        async with self._store.transaction() as tx:
            record = await tx.get_investment(user_id)
            record.auto_compound = enabled
            await tx.save_investment(record)

        logger.info("auto_compound_set", user_id=user_id, enabled=enabled)
        return self.project(record, now)
