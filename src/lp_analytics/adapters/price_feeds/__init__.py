from __future__ import annotations

from .base import BasePriceFeed
from .coingecko import CoinGeckoPriceFeed

PRICE_FEEDS: dict[str, type[BasePriceFeed]] = {
    "coingecko": CoinGeckoPriceFeed,
}


def get_price_feed_class(feed_name: str) -> type[BasePriceFeed]:
    """Get price feed class by name.

    Raises:
        ValueError: If feed_name is not recognized
    """
    normalized = feed_name.lower()
    if normalized not in PRICE_FEEDS:
        raise ValueError(
            f"Unknown price feed '{feed_name}'. "
            f"Available: {', '.join(PRICE_FEEDS.keys())}"
        )
    return PRICE_FEEDS[normalized]


__all__ = ["BasePriceFeed", "CoinGeckoPriceFeed", "PRICE_FEEDS", "get_price_feed_class"]
