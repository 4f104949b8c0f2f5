"""User directory: account holders and their ROI payout preference.

Authentication is handled by the API layer; the ledger only needs to know
that a user exists and whether their ROI payouts are converted to USD.
"""

import time

from roi.exceptions import InvalidInput, UserNotFound
from roi.logging import get_logger
from roi.models import User
from roi.store.repository import Store, Transaction

logger = get_logger(__name__)


class UserDirectory:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def register(self, email: str, convert_to_usd: bool = True) -> User:
        """Create a user. Emails are unique, case-insensitively.

        Raises:
            InvalidInput: If the email is blank or already registered.
        """
        email = email.strip()
        if not email:
            raise InvalidInput("email required")

        async with self._store.transaction() as tx:
            if await tx.get_user_by_email(email) is not None:
                raise InvalidInput("Email already registered")
            user = await tx.insert_user(email, convert_to_usd, time.time())

        logger.info("user_registered", user_id=user.id, convert_to_usd=convert_to_usd)
        return user

    async def require_in(self, tx: Transaction, user_id: int) -> User:
        user = await tx.get_user(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    async def get(self, user_id: int) -> User:
        async with self._store.transaction(write=False) as tx:
            return await self.require_in(tx, user_id)

    async def set_convert_to_usd(self, user_id: int, enabled: bool) -> User:
        """Set whether the user's ROI payouts are credited in USD."""
        async with self._store.transaction() as tx:
            user = await self.require_in(tx, user_id)
            await tx.update_convert_to_usd(user_id, enabled)
            user.convert_to_usd = enabled

        logger.info("roi_conversion_updated", user_id=user_id, enabled=enabled)
        return user
