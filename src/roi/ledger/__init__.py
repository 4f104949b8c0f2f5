"""Wallet ledger: asset precision and balance bookkeeping."""

from roi.ledger.precision import AssetPrecision, quantize, round_usd
from roi.ledger.wallets import Ledger

__all__ = ["AssetPrecision", "Ledger", "quantize", "round_usd"]
