"""Shared data models for the ROI ledger.

CRITICAL: All monetary values use Decimal. Never use float for balances,
rates, or amounts. Timestamps are float epoch seconds.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal

USD = "USD"
USDT = "USDT"
PEGGED_ASSETS = frozenset({USD, USDT})

SECONDS_PER_DAY = 86400


def fx_pair(asset: str) -> str:
    """Return the USD pair key for an asset, e.g. ``BTC`` -> ``BTC-USD``."""
    return f"{asset}-USD"


@dataclass
class Wallet:
    """Balance of one asset for one user."""

    user_id: int
    asset: str
    available: Decimal = Decimal("0")
    frozen: Decimal = Decimal("0")


@dataclass
class User:
    """A ledger account holder and their ROI payout preference."""

    id: int
    email: str
    convert_to_usd: bool = True
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Payout:
    """Immutable record of one ROI settlement."""

    user_id: int
    plan_id: str
    original_currency: str
    original_amount: Decimal
    fx_rate_to_usd: Decimal | None
    usd_amount: Decimal | None
    converted: bool
    created_at: float
    id: int | None = None


@dataclass
class InvestmentRecord:
    """Per-user investment: USD principal and the open accrual window.

    ``window_start`` is None exactly when ``principal`` is not positive.
    """

    user_id: int
    principal: Decimal = Decimal("0")
    auto_compound: bool = False
    window_start: float | None = None

    @property
    def is_accruing(self) -> bool:
        return self.principal > 0 and self.window_start is not None


@dataclass
class ConversionLeg:
    """One side of an asset conversion."""

    asset: str
    amount: Decimal
    pair: str
    rate: Decimal


@dataclass
class ConversionResult:
    """Executed amounts and rates of a conversion, for audit display."""

    user_id: int
    source: ConversionLeg
    target: ConversionLeg
    gross_usd: Decimal
    net_usd: Decimal
    fee_pct: Decimal
    source_balance: Decimal
    target_balance: Decimal


@dataclass
class SettlementResult:
    """Outcome of a ROI settlement."""

    converted: bool
    credited_asset: str
    credited_amount: Decimal
    new_balance: Decimal
    payout: Payout
    rate: Decimal | None = None


@dataclass
class InvestmentStatus:
    """Read-only projection of an investment record at a point in time."""

    user_id: int
    principal: Decimal
    daily_rate: Decimal
    accrued: Decimal
    auto_compound: bool
    window_start: float | None
    seconds_to_next: int | None

    @property
    def active(self) -> bool:
        return self.window_start is not None


@dataclass
class FoldResult:
    """Outcome of folding accrued interest (reinvest or claim)."""

    amount: Decimal
    status: InvestmentStatus
    usd_balance: Decimal | None = None  # set by claim only


@dataclass
class PortfolioRow:
    """USD valuation of a single wallet."""

    asset: str
    available: Decimal
    usd: Decimal
    percent: Decimal = Decimal("0")
    priced: bool = True


@dataclass
class Portfolio:
    """USD valuation of all of a user's wallets."""

    user_id: int
    total_usd: Decimal
    rows: list[PortfolioRow] = field(default_factory=list)
