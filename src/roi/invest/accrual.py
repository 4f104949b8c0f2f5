"""Interest arithmetic for investment records.

Within an open window interest is simple and linear in elapsed time:

    accrued = principal * daily_rate * elapsed_seconds / 86400

Compounding only happens when accrual is folded back into principal, either
explicitly (reinvest) or by the sweeper, which folds N whole days at once as
``principal * (1 + daily_rate) ** N``.
"""

import math
from decimal import Decimal

from roi.ledger.precision import round_usd
from roi.models import SECONDS_PER_DAY, InvestmentRecord

_SECONDS_PER_DAY = Decimal(SECONDS_PER_DAY)


def elapsed_seconds(window_start: float, now: float) -> float:
    """Seconds since the window opened; a clock behind the window counts as 0."""
    return max(0.0, now - window_start)


def accrued(record: InvestmentRecord, daily_rate: Decimal, now: float) -> Decimal:
    """Unrounded simple interest accrued in the record's open window."""
    if not record.is_accruing:
        return Decimal("0")
    elapsed = Decimal(str(elapsed_seconds(record.window_start, now)))  # type: ignore[arg-type]
    return record.principal * daily_rate * elapsed / _SECONDS_PER_DAY


def seconds_to_next(window_start: float, now: float) -> int:
    """Seconds until the next whole-day boundary of the window."""
    remainder = elapsed_seconds(window_start, now) % SECONDS_PER_DAY
    return math.ceil(SECONDS_PER_DAY - remainder)


def whole_days(window_start: float, now: float) -> int:
    return int(elapsed_seconds(window_start, now) // SECONDS_PER_DAY)


def compound(principal: Decimal, daily_rate: Decimal, days: int) -> Decimal:
    """Principal after ``days`` daily compounding events, rounded to cents."""
    return round_usd(principal * (1 + daily_rate) ** days)
