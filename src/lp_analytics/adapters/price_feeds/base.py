from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from ...settings import AnalyticsSettings


class BasePriceFeed(ABC):
    """Abstract base class for USD price feeds keyed by an external feed id."""

    def __init__(self, config: AnalyticsSettings):
        """Initialize the feed with configuration."""
        self.config = config

    @property
    @abstractmethod
    def feed_name(self) -> str:
        """Return the name of this feed."""
        ...

    @abstractmethod
    async def fetch_spot_price(self, feed_id: str) -> Decimal:
        """Fetch the current USD price for ``feed_id``."""
        ...

    @abstractmethod
    async def fetch_historical_price(self, feed_id: str, date: str) -> Decimal:
        """Fetch the USD price of ``feed_id`` on a ``DD-MM-YYYY`` calendar date."""
        ...
