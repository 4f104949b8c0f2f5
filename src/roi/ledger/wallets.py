"""Per-user, per-asset wallet balances with non-negativity enforcement.

Every public method runs in its own store transaction. The ``*_in``
variants take an already-open transaction so that other components
(converter, settlement, investment engine) can combine a wallet write
with their own writes atomically.
"""

from decimal import Decimal

from roi.exceptions import InsufficientBalance, InvalidInput
from roi.ledger.precision import AssetPrecision
from roi.logging import get_logger
from roi.models import Wallet
from roi.store.repository import Store, Transaction

logger = get_logger(__name__)


class Ledger:
    """Wallet credit/debit bookkeeping.

    Args:
        store: Ledger store providing transactions.
        precision: Per-asset rounding policy.
    """

    def __init__(self, store: Store, precision: AssetPrecision) -> None:
        self._store = store
        self._precision = precision

    @property
    def precision(self) -> AssetPrecision:
        return self._precision

    def _checked_amount(self, asset: str, amount: Decimal) -> Decimal:
        rounded = self._precision.round(asset, amount)
        if rounded <= 0:
            raise InvalidInput(
                f"Amount must be positive at {asset} precision, got {amount}"
            )
        return rounded

    async def credit_in(
        self, tx: Transaction, user_id: int, asset: str, amount: Decimal
    ) -> Decimal:
        """Add ``amount`` to the available balance and return the new balance."""
        amount = self._checked_amount(asset, amount)
        wallet = await tx.get_wallet(user_id, asset)
        wallet.available = self._precision.round(asset, wallet.available + amount)
        await tx.save_wallet(wallet)

        logger.info(
            "wallet_credited",
            user_id=user_id,
            asset=asset,
            amount=str(amount),
            balance=str(wallet.available),
        )
        return wallet.available

    async def debit_in(
        self, tx: Transaction, user_id: int, asset: str, amount: Decimal
    ) -> Decimal:
        """Subtract ``amount`` from the available balance and return the new balance.

        Raises:
            InsufficientBalance: If the wallet holds less than ``amount``.
        """
        amount = self._checked_amount(asset, amount)
        wallet = await tx.get_wallet(user_id, asset)
        if wallet.available < amount:
            raise InsufficientBalance(user_id, asset, wallet.available, amount)

        wallet.available = self._precision.round(asset, wallet.available - amount)
        await tx.save_wallet(wallet)

        logger.info(
            "wallet_debited",
            user_id=user_id,
            asset=asset,
            amount=str(amount),
            balance=str(wallet.available),
        )
        return wallet.available

    async def credit(self, user_id: int, asset: str, amount: Decimal) -> Decimal:
        async with self._store.transaction() as tx:
            return await self.credit_in(tx, user_id, asset, amount)

    async def debit(self, user_id: int, asset: str, amount: Decimal) -> Decimal:
        async with self._store.transaction() as tx:
            return await self.debit_in(tx, user_id, asset, amount)

    async def adjust(self, user_id: int, asset: str, amount: Decimal) -> Decimal:
        """Signed wallet deposit: positive credits, negative withdraws."""
        if amount == 0:
            raise InvalidInput("Deposit amount must be non-zero")
        if amount > 0:
            return await self.credit(user_id, asset, amount)
        return await self.debit(user_id, asset, -amount)

    async def balance(self, user_id: int, asset: str) -> Decimal:
        async with self._store.transaction(write=False) as tx:
            wallet = await tx.get_wallet(user_id, asset)
        return wallet.available

    async def wallets(self, user_id: int) -> list[Wallet]:
        async with self._store.transaction(write=False) as tx:
            return await tx.list_wallets(user_id)
