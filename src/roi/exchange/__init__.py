from roi.exchange.converter import ExchangeConverter

__all__ = ["ExchangeConverter"]
