"""Helius client for parsed transactions and Whirlpool account state.

Transactions come from the enhanced-transactions REST endpoint; account data
from the JSON-RPC endpoint. Whirlpool accounts are Anchor accounts and are
decoded from their base64 payload at fixed offsets.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import struct
from decimal import Decimal
from typing import Any

import backoff
import base58
import requests

from ...domain import OperationKind, PoolState, PositionState, TickState
from ...settings import AnalyticsSettings
from .base import BaseChainDataSource, RawTransaction
from .instructions import (
    KIND_DISCRIMINATORS,
    instruction_discriminator,
    transaction_matches,
)

logger = logging.getLogger(__name__)

POSITION_ACCOUNT_SIZE = 216
POSITION_MINT_OFFSET = 40
WHIRLPOOL_MIN_SIZE = 261
TICK_ARRAY_SIZE = 9988
TICKS_PER_ARRAY = 88
TICK_SIZE = 113
TICK_ARRAY_START_OFFSET = 8
TICK_ARRAY_TICKS_OFFSET = 12
TICK_ARRAY_WHIRLPOOL_OFFSET = TICK_ARRAY_TICKS_OFFSET + TICKS_PER_ARRAY * TICK_SIZE
RATE_LIMIT_CODES = {429, -32429}

__all__ = [
    "HeliusChainDataSource",
    "HeliusRateLimitError",
    "HeliusRpcError",
    "KIND_DISCRIMINATORS",
    "decode_position",
    "decode_tick",
    "decode_whirlpool",
    "instruction_discriminator",
    "tick_array_start_index",
    "transaction_matches",
]


class HeliusRateLimitError(Exception):
    """Raised when Helius answers with a rate limit error."""

    pass


class HeliusRpcError(Exception):
    """Raised when a JSON-RPC call returns an error object."""

    pass


def _pubkey(data: bytes, offset: int) -> str:
    return base58.b58encode(data[offset : offset + 32]).decode()


def _u128(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 16], "little")


def decode_position(address: str, data: bytes) -> PositionState:
    """Decode a Whirlpool ``Position`` account."""
    if len(data) < POSITION_ACCOUNT_SIZE:
        raise ValueError(
            f"Position account {address} too short: {len(data)} bytes"
        )
    tick_lower, tick_upper = struct.unpack_from("<ii", data, 88)
    (fee_owed_a,) = struct.unpack_from("<Q", data, 112)
    (fee_owed_b,) = struct.unpack_from("<Q", data, 136)
    return PositionState(
        address=address,
        pool=_pubkey(data, 8),
        position_mint=_pubkey(data, POSITION_MINT_OFFSET),
        liquidity=_u128(data, 72),
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        fee_owed_a=fee_owed_a,
        fee_owed_b=fee_owed_b,
        fee_growth_checkpoint_a=_u128(data, 96),
        fee_growth_checkpoint_b=_u128(data, 120),
    )


def decode_whirlpool(address: str, data: bytes) -> PoolState:
    """Decode a ``Whirlpool`` pool account."""
    if len(data) < WHIRLPOOL_MIN_SIZE:
        raise ValueError(f"Whirlpool account {address} too short: {len(data)} bytes")
    (tick_spacing,) = struct.unpack_from("<H", data, 41)
    (fee_rate,) = struct.unpack_from("<H", data, 45)
    (tick_current_index,) = struct.unpack_from("<i", data, 81)
    return PoolState(
        address=address,
        sqrt_price=_u128(data, 65),
        tick_current_index=tick_current_index,
        tick_spacing=tick_spacing,
        fee_rate=fee_rate,
        token_mint_a=_pubkey(data, 101),
        vault_a=_pubkey(data, 133),
        fee_growth_global_a=_u128(data, 165),
        token_mint_b=_pubkey(data, 181),
        vault_b=_pubkey(data, 213),
        fee_growth_global_b=_u128(data, 245),
    )


def tick_array_start_index(tick_index: int, tick_spacing: int) -> int:
    """First tick of the array holding ``tick_index``."""
    ticks_in_array = tick_spacing * TICKS_PER_ARRAY
    return (tick_index // ticks_in_array) * ticks_in_array


def decode_tick(data: bytes, tick_index: int, tick_spacing: int) -> TickState:
    """Decode the ``Tick`` entry for ``tick_index`` from a ``TickArray`` account."""
    if len(data) < TICK_ARRAY_SIZE:
        raise ValueError(f"Tick array too short: {len(data)} bytes")
    (start,) = struct.unpack_from("<i", data, TICK_ARRAY_START_OFFSET)
    slot, remainder = divmod(tick_index - start, tick_spacing)
    if remainder or not 0 <= slot < TICKS_PER_ARRAY:
        raise ValueError(f"Tick {tick_index} is not in the array starting at {start}")

    offset = TICK_ARRAY_TICKS_OFFSET + slot * TICK_SIZE
    return TickState(
        index=tick_index,
        initialized=bool(data[offset]),
        fee_growth_outside_a=_u128(data, offset + 33),
        fee_growth_outside_b=_u128(data, offset + 49),
    )


def _is_retryable(e: Exception) -> bool:
    if isinstance(e, requests.exceptions.HTTPError):
        return e.response is None or e.response.status_code in {429, 500, 502, 503, 504}
    return True


class HeliusChainDataSource(BaseChainDataSource):
    """Blockchain data source backed by Helius."""

    def __init__(self, config: AnalyticsSettings):
        super().__init__(config)
        self.rpc_url = config.helius_rpc_endpoint
        self.api_url = config.helius_api_url.rstrip("/")
        self.program_id = config.whirlpool_program_id
        self.page_size = config.transaction_page_size
        self.timeout = config.request_timeout
        self._api_key = (
            config.helius_api_key.get_secret_value() if config.helius_api_key else None
        )
        self._decimals_cache: dict[str, int] = {}

    @property
    def source_name(self) -> str:
        return "helius"

    @backoff.on_exception(
        backoff.expo,
        (requests.exceptions.RequestException, HeliusRateLimitError),
        max_time=30,
        giveup=lambda e: not _is_retryable(e),
        jitter=backoff.full_jitter,
    )
    def _rpc(self, method: str, params: list[Any]) -> Any:
        """Make a JSON-RPC call and return its ``result`` member."""
        response = requests.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise HeliusRpcError(f"Unexpected JSON-RPC payload for {method}")

        error = payload.get("error")
        if error:
            if error.get("code") in RATE_LIMIT_CODES:
                raise HeliusRateLimitError(error.get("message", "rate limited"))
            raise HeliusRpcError(f"{method} failed: {error.get('message', error)}")
        return payload.get("result")

    @backoff.on_exception(
        backoff.expo,
        (requests.exceptions.RequestException, HeliusRateLimitError),
        max_time=30,
        giveup=lambda e: not _is_retryable(e),
        jitter=backoff.full_jitter,
    )
    def _transactions_page(self, address: str, before: str | None, limit: int) -> list[RawTransaction]:
        params: dict[str, Any] = {"limit": limit}
        if self._api_key:
            params["api-key"] = self._api_key
        if before:
            params["before"] = before

        response = requests.get(
            f"{self.api_url}/v0/addresses/{address}/transactions",
            params=params,
            timeout=self.timeout,
        )
        if response.status_code == 429:
            raise HeliusRateLimitError(response.text)
        response.raise_for_status()

        try:
            payload = response.json(parse_float=Decimal)
        except json.JSONDecodeError:
            raise ValueError("Invalid JSON from Helius transactions API") from None
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected Helius transactions payload: {payload!r}")
        return payload

    async def get_transactions_for_address(
        self,
        address: str,
        program_filter: str | None,
        type_filter: OperationKind | None,
        limit: int,
    ) -> list[RawTransaction]:
        scanned = 0
        before: str | None = None
        matched: list[RawTransaction] = []

        while scanned < limit:
            page_limit = min(self.page_size, limit - scanned)
            page = await asyncio.to_thread(
                self._transactions_page, address, before, page_limit
            )
            if not page:
                break
            scanned += len(page)
            matched.extend(
                tx for tx in page if transaction_matches(tx, program_filter, type_filter)
            )
            if len(page) < page_limit:
                break
            before = page[-1].get("signature")
            if not before:
                break

        logger.debug(
            "Helius query: address=%s type=%s scanned=%d matched=%d",
            address,
            type_filter.value if type_filter else "ALL",
            scanned,
            len(matched),
        )
        return matched

    async def _account_data(self, address: str) -> tuple[str, bytes] | None:
        result = await asyncio.to_thread(
            self._rpc, "getAccountInfo", [address, {"encoding": "base64"}]
        )
        value = (result or {}).get("value")
        if not value:
            return None
        encoded, _encoding = value["data"]
        return value.get("owner", ""), base64.b64decode(encoded)

    async def _program_accounts(self, filters: list[dict[str, Any]]) -> list[dict[str, Any]]:
        accounts = await asyncio.to_thread(
            self._rpc,
            "getProgramAccounts",
            [self.program_id, {"encoding": "base64", "filters": filters}],
        )
        return accounts or []

    async def get_position_state(self, position_id: str) -> PositionState | None:
        accounts = await self._program_accounts(
            [
                {"dataSize": POSITION_ACCOUNT_SIZE},
                {"memcmp": {"offset": POSITION_MINT_OFFSET, "bytes": position_id}},
            ]
        )
        if accounts:
            account = accounts[0]
            encoded, _encoding = account["account"]["data"]
            return decode_position(account["pubkey"], base64.b64decode(encoded))

        # The id may be the position account itself rather than its mint.
        account_data = await self._account_data(position_id)
        if account_data is None:
            return None
        owner, data = account_data
        if owner != self.program_id or len(data) != POSITION_ACCOUNT_SIZE:
            return None
        return decode_position(position_id, data)

    async def get_pool_state(self, pool_id: str) -> PoolState | None:
        account_data = await self._account_data(pool_id)
        if account_data is None:
            return None
        owner, data = account_data
        if owner != self.program_id:
            logger.warning("Account %s is not owned by the Whirlpool program", pool_id)
            return None
        return decode_whirlpool(pool_id, data)

    async def get_mint_decimals(self, mint: str) -> int:
        cached = self._decimals_cache.get(mint)
        if cached is not None:
            return cached

        result = await asyncio.to_thread(
            self._rpc, "getAccountInfo", [mint, {"encoding": "jsonParsed"}]
        )
        value = (result or {}).get("value")
        try:
            decimals = int(value["data"]["parsed"]["info"]["decimals"])
        except (TypeError, KeyError) as e:
            raise ValueError(f"Account {mint} is not a token mint") from e

        self._decimals_cache[mint] = decimals
        return decimals

    async def get_tick_state(self, pool: PoolState, tick_index: int) -> TickState | None:
        if pool.tick_spacing <= 0:
            raise ValueError(f"Pool {pool.address} has no tick spacing")
        start = tick_array_start_index(tick_index, pool.tick_spacing)
        # Tick arrays are matched on their pool and start index instead of
        # deriving the program address.
        accounts = await self._program_accounts(
            [
                {"dataSize": TICK_ARRAY_SIZE},
                {"memcmp": {"offset": TICK_ARRAY_WHIRLPOOL_OFFSET, "bytes": pool.address}},
                {
                    "memcmp": {
                        "offset": TICK_ARRAY_START_OFFSET,
                        "bytes": base58.b58encode(struct.pack("<i", start)).decode(),
                    }
                },
            ]
        )
        if not accounts:
            logger.warning(
                "Tick array starting at %d not found for pool %s", start, pool.address
            )
            return None
        encoded, _encoding = accounts[0]["account"]["data"]
        return decode_tick(base64.b64decode(encoded), tick_index, pool.tick_spacing)
