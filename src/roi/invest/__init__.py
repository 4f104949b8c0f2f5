"""Investment accrual: interest arithmetic, the engine, and the auto-compound sweeper."""

from roi.invest.engine import InvestmentEngine
from roi.invest.sweeper import AutoCompoundSweeper, SweepReport

__all__ = ["AutoCompoundSweeper", "InvestmentEngine", "SweepReport"]
