from __future__ import annotations

from .chain import CHAIN_SOURCES
from .price_feeds import PRICE_FEEDS

__all__ = ["CHAIN_SOURCES", "PRICE_FEEDS"]
