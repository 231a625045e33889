from __future__ import annotations

from .oracle import PRICE_UNAVAILABLE, PriceOracle, price_date, to_utc_datetime

__all__ = ["PRICE_UNAVAILABLE", "PriceOracle", "price_date", "to_utc_datetime"]
