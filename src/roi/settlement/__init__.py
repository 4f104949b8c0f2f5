"""ROI settlement and the payout audit log."""

from roi.settlement.payouts import PayoutRecorder
from roi.settlement.settler import Settlement

__all__ = ["PayoutRecorder", "Settlement"]
