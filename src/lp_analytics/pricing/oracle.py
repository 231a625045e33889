"""USD price lookups for token mints with a degrade-to-zero policy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal

from ..adapters.price_feeds.base import BasePriceFeed

logger = logging.getLogger(__name__)

PRICE_UNAVAILABLE = Decimal(0)

Timestamp = datetime | int | float


def to_utc_datetime(timestamp: Timestamp) -> datetime:
    """Normalize a datetime or unix seconds value to an aware UTC datetime."""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def price_date(timestamp: Timestamp) -> str:
    """Calendar date (UTC) of ``timestamp`` formatted as ``DD-MM-YYYY``."""
    return to_utc_datetime(timestamp).strftime("%d-%m-%Y")


class PriceOracle:
    """Resolves token addresses to price feeds and returns USD prices.

    A returned ``0`` means "price unavailable": the token has no feed mapping,
    or the feed failed. Failures are logged and never raised, so one missing
    price zeroes a single leg instead of aborting a whole computation.

    Lookups are deduplicated on ``(feed_id, date)``; concurrent callers share
    one in-flight request and later callers reuse its result. Create one
    oracle per request, since cached prices are never refreshed.
    """

    def __init__(self, feed: BasePriceFeed, feed_ids: Mapping[str, str]):
        self.feed = feed
        self._feed_ids = dict(feed_ids)
        self._lookups: dict[tuple[str, str | None], asyncio.Task[Decimal]] = {}

    def resolve_feed_id(self, token_address: str) -> str | None:
        return self._feed_ids.get(token_address)

    async def get_price_usd(
        self, token_address: str, timestamp: Timestamp | None = None
    ) -> Decimal:
        """USD price of ``token_address`` now, or on the UTC day of ``timestamp``.

        Two timestamps on the same UTC day get the same price.
        """
        feed_id = self.resolve_feed_id(token_address)
        if feed_id is None:
            logger.warning(
                "No price feed mapping for %s; treating price as unavailable",
                token_address,
            )
            return PRICE_UNAVAILABLE

        date = price_date(timestamp) if timestamp is not None else None
        key = (feed_id, date)
        task = self._lookups.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(token_address, feed_id, date))
            self._lookups[key] = task
        return await asyncio.shield(task)

    async def get_token_price(
        self,
        token_a: str,
        token_b: str,
        timestamp: Timestamp | None = None,
    ) -> Decimal:
        """Price of one unit of ``token_a`` expressed in ``token_b``.

        Returns ``1`` for identical tokens and ``0`` when either USD price is
        unavailable.
        """
        if token_a == token_b:
            return Decimal(1)

        price_a, price_b = await asyncio.gather(
            self.get_price_usd(token_a, timestamp),
            self.get_price_usd(token_b, timestamp),
        )
        if price_a == 0 or price_b == 0:
            logger.warning(
                "Pair price unavailable: %s=%s, %s=%s", token_a, price_a, token_b, price_b
            )
            return PRICE_UNAVAILABLE
        return price_a / price_b

    async def _fetch(self, token_address: str, feed_id: str, date: str | None) -> Decimal:
        try:
            if date is None:
                price = await self.feed.fetch_spot_price(feed_id)
            else:
                price = await self.feed.fetch_historical_price(feed_id, date)
        except Exception as exc:
            logger.warning(
                "Price lookup failed for %s (feed %s, date %s): %s; using 0",
                token_address,
                feed_id,
                date or "spot",
                exc,
            )
            return PRICE_UNAVAILABLE

        logger.debug(
            "%s price via %s (%s): %s", token_address, self.feed.feed_name, date or "spot", price
        )
        return price
