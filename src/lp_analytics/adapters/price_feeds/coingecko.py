from __future__ import annotations

import asyncio
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import backoff
import requests

from ...settings import AnalyticsSettings
from .base import BasePriceFeed

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _giveup(e: Exception) -> bool:
    return (
        isinstance(e, requests.exceptions.HTTPError)
        and e.response is not None
        and e.response.status_code not in RETRYABLE_STATUS_CODES
    )


class CoinGeckoPriceFeed(BasePriceFeed):
    """USD prices from the CoinGecko API.

    Spot prices come from ``/simple/price``; daily prices from
    ``/coins/{id}/history``, which only resolves to a calendar day.
    """

    def __init__(self, config: AnalyticsSettings):
        super().__init__(config)
        self.api_base_url = config.coingecko_api_url.rstrip("/")
        self.timeout = config.request_timeout
        self._headers: dict[str, str] = {"accept": "application/json"}
        if config.coingecko_api_key is not None:
            header = "x-cg-pro-api-key" if config.coingecko_pro else "x-cg-demo-api-key"
            self._headers[header] = config.coingecko_api_key.get_secret_value()

    @property
    def feed_name(self) -> str:
        return "coingecko"

    @backoff.on_exception(
        backoff.expo,
        requests.exceptions.RequestException,
        max_tries=4,
        giveup=_giveup,
        jitter=backoff.full_jitter,
    )
    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        url = f"{self.api_base_url}{path}"
        logger.debug("Calling %s params=%s", url, params)
        response = await asyncio.to_thread(
            requests.get,
            url,
            params=params,
            headers=self._headers,
            timeout=self.timeout,
        )
        response.raise_for_status()

        try:
            # Keep JSON numbers exact; prices never pass through float.
            return response.json(parse_float=Decimal)
        except json.JSONDecodeError:
            raise ValueError("Invalid JSON from CoinGecko API")

    @staticmethod
    def _to_decimal(value: Any, feed_id: str) -> Decimal:
        try:
            price = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Invalid price value for {feed_id}: {value!r}") from e
        if not price.is_finite() or price < 0:
            raise ValueError(f"Invalid price value for {feed_id}: {value!r}")
        return price

    async def fetch_spot_price(self, feed_id: str) -> Decimal:
        data = await self._get_json(
            "/simple/price", {"ids": feed_id, "vs_currencies": "usd"}
        )
        if not isinstance(data, dict) or "usd" not in (data.get(feed_id) or {}):
            raise ValueError(f"No USD spot price for {feed_id} in response: {data}")
        return self._to_decimal(data[feed_id]["usd"], feed_id)

    async def fetch_historical_price(self, feed_id: str, date: str) -> Decimal:
        data = await self._get_json(
            f"/coins/{feed_id}/history", {"date": date, "localization": "false"}
        )
        market_data = data.get("market_data") if isinstance(data, dict) else None
        current_price = (market_data or {}).get("current_price") or {}
        usd = current_price.get("usd")
        if usd is None:
            raise ValueError(f"No USD price for {feed_id} on {date}")
        return self._to_decimal(usd, feed_id)
