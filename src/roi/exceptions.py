"""Custom exceptions for the ROI ledger.

Every caller-facing error is raised before a transaction commits, so the
store rolls back and no partial mutation survives.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class InvalidInput(LedgerError):
    """Raised when a request is missing fields or carries invalid values."""


class InsufficientBalance(LedgerError):
    """Raised when a debit exceeds the available wallet balance."""

    def __init__(
        self, user_id: int, asset: str, available: Decimal, requested: Decimal
    ) -> None:
        super().__init__(
            f"Insufficient {asset} balance for user {user_id}: "
            f"available={available}, requested={requested}"
        )
        self.user_id = user_id
        self.asset = asset
        self.available = available
        self.requested = requested


class UnknownPair(LedgerError):
    """Raised when an FX pair has never been set."""


class MissingFxRate(UnknownPair):
    """Raised when a conversion needs a rate for an asset that has none."""


class UserNotFound(LedgerError):
    """Raised when an operation references a user that does not exist."""


class NoActiveAccrual(LedgerError):
    """Raised when reinvest/claim is attempted while the accrual timer is inactive."""


class PersistenceError(LedgerError):
    """Raised when a mutation could not be durably committed."""


class PriceFeedError(LedgerError):
    """Raised by price sources on network errors or malformed prices.

    Never reaches ledger callers: the FX refresh absorbs it.
    """
