"""Multi-asset wallet ledger with FX conversion, ROI settlement and investment accrual."""

__version__ = "1.0.0"
