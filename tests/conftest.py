from __future__ import annotations

from decimal import Decimal

import base58
import pytest

from lp_analytics.adapters.chain.base import BaseChainDataSource, RawTransaction
from lp_analytics.adapters.chain.instructions import instruction_discriminator
from lp_analytics.adapters.price_feeds.base import BasePriceFeed
from lp_analytics.constants import TOKEN_PROGRAM_ID, USDC_MINT, WHIRLPOOL_PROGRAM_ID, WSOL_MINT
from lp_analytics.domain import OperationKind, PoolState, PositionState, TickState
from lp_analytics.settings import AnalyticsSettings

POOL = "PoolAddress111"
POSITION_MINT = "PositionMint111"
POSITION_ACCOUNT = "PositionAccount111"
VAULT_A = "VaultA111"
VAULT_B = "VaultB111"
OWNER = "OwnerWallet111"
POOL_AUTHORITY = "PoolAuthority111"

# 2023-11-14T22:13:20Z
DEPOSIT_TS = 1_700_000_000


class FakeChainSource(BaseChainDataSource):
    """In-memory blockchain data source."""

    def __init__(
        self,
        config: AnalyticsSettings,
        positions: dict[str, PositionState] | None = None,
        pools: dict[str, PoolState] | None = None,
        decimals: dict[str, int] | None = None,
        transactions: dict[OperationKind | None, list[RawTransaction]] | None = None,
        failing_kinds: tuple[OperationKind, ...] = (),
        ticks: dict[int, TickState] | None = None,
    ):
        super().__init__(config)
        self.positions = positions or {}
        self.pools = pools or {}
        self.decimals = decimals or {}
        self.transactions = transactions or {}
        self.failing_kinds = failing_kinds
        self.ticks = ticks or {}
        self.calls: list[tuple[str, OperationKind | None]] = []
        self.position_calls = 0

    @property
    def source_name(self) -> str:
        return "fake"

    async def get_transactions_for_address(
        self, address, program_filter, type_filter, limit
    ) -> list[RawTransaction]:
        self.calls.append((address, type_filter))
        if type_filter in self.failing_kinds:
            raise RuntimeError(f"source down for {type_filter}")
        return list(self.transactions.get(type_filter, []))[:limit]

    async def get_position_state(self, position_id):
        self.position_calls += 1
        return self.positions.get(position_id)

    async def get_pool_state(self, pool_id):
        return self.pools.get(pool_id)

    async def get_mint_decimals(self, mint):
        return self.decimals[mint]

    async def get_tick_state(self, pool, tick_index):
        return self.ticks.get(tick_index)


class FakePriceFeed(BasePriceFeed):
    """Price feed answering from dictionaries and recording every call."""

    def __init__(
        self,
        config: AnalyticsSettings,
        spot: dict[str, Decimal] | None = None,
        history: dict[tuple[str, str], Decimal] | None = None,
    ):
        super().__init__(config)
        self.spot = spot or {}
        self.history = history or {}
        self.calls: list[tuple[str, str | None]] = []

    @property
    def feed_name(self) -> str:
        return "fake"

    async def fetch_spot_price(self, feed_id):
        self.calls.append((feed_id, None))
        if feed_id not in self.spot:
            raise ValueError(f"no spot price for {feed_id}")
        return self.spot[feed_id]

    async def fetch_historical_price(self, feed_id, date):
        self.calls.append((feed_id, date))
        if (feed_id, date) not in self.history:
            raise ValueError(f"no price for {feed_id} on {date}")
        return self.history[(feed_id, date)]


def transfer(
    mint: str,
    amount: str,
    from_account: str,
    to_account: str,
    from_user: str,
    to_user: str,
) -> dict:
    return {
        "mint": mint,
        "tokenAmount": Decimal(amount),
        "fromTokenAccount": from_account,
        "toTokenAccount": to_account,
        "fromUserAccount": from_user,
        "toUserAccount": to_user,
    }


DEPOSIT_MOVES = (("OwnerAtaA", VAULT_A), ("OwnerAtaB", VAULT_B))
PAYOUT_MOVES = ((VAULT_A, "OwnerAtaA"), (VAULT_B, "OwnerAtaB"))


def token_transfer_instruction(source: str, destination: str) -> dict:
    """SPL ``Transfer`` instruction as listed by the data source."""
    return {
        "programId": TOKEN_PROGRAM_ID,
        "data": base58.b58encode(bytes([3]) + (1).to_bytes(8, "little")).decode(),
        "accounts": [source, destination, POOL_AUTHORITY],
    }


def whirlpool_instruction(name: str, moves=()) -> dict:
    """Whirlpool instruction whose inner token transfers follow ``moves``."""
    return {
        "programId": WHIRLPOOL_PROGRAM_ID,
        "data": base58.b58encode(instruction_discriminator(name) + b"\x00" * 16).decode(),
        "accounts": [],
        "innerInstructions": [
            token_transfer_instruction(source, destination) for source, destination in moves
        ],
    }


def deposit_tx(
    signature: str,
    timestamp: int | None,
    sol: str,
    usdc: str,
    instructions: list[dict] | None = None,
) -> dict:
    tx = {
        "signature": signature,
        "timestamp": timestamp,
        "fee": 5000,
        "tokenTransfers": [
            transfer(WSOL_MINT, sol, "OwnerAtaA", VAULT_A, OWNER, POOL_AUTHORITY),
            transfer(USDC_MINT, usdc, "OwnerAtaB", VAULT_B, OWNER, POOL_AUTHORITY),
        ],
    }
    if instructions is not None:
        tx["instructions"] = instructions
    return tx


def payout_tx(
    signature: str,
    timestamp: int | None,
    sol: str,
    usdc: str,
    instructions: list[dict] | None = None,
) -> dict:
    tx = {
        "signature": signature,
        "timestamp": timestamp,
        "fee": 5000,
        "tokenTransfers": [
            transfer(WSOL_MINT, sol, VAULT_A, "OwnerAtaA", POOL_AUTHORITY, OWNER),
            transfer(USDC_MINT, usdc, VAULT_B, "OwnerAtaB", POOL_AUTHORITY, OWNER),
        ],
    }
    if instructions is not None:
        tx["instructions"] = instructions
    return tx


@pytest.fixture
def settings():
    return AnalyticsSettings(
        helius_rpc_url="http://rpc.test",
        helius_api_url="http://api.test",
        coingecko_api_url="http://coingecko.test/api/v3",
        global_timeout_seconds=5.0,
    )


@pytest.fixture
def position_state():
    return PositionState(
        address=POSITION_ACCOUNT,
        position_mint=POSITION_MINT,
        pool=POOL,
        liquidity=0,
        tick_lower=-20_000,
        tick_upper=-10_000,
        fee_owed_a=2_000_000_000,
        fee_owed_b=3_000_000,
    )


@pytest.fixture
def pool_state():
    return PoolState(
        address=POOL,
        token_mint_a=WSOL_MINT,
        token_mint_b=USDC_MINT,
        vault_a=VAULT_A,
        vault_b=VAULT_B,
        sqrt_price=2**64,
    )


@pytest.fixture
def make_source(settings, position_state, pool_state):
    def _make(**kwargs) -> FakeChainSource:
        kwargs.setdefault("positions", {POSITION_MINT: position_state})
        kwargs.setdefault("pools", {POOL: pool_state})
        kwargs.setdefault("decimals", {WSOL_MINT: 9, USDC_MINT: 6})
        return FakeChainSource(settings, **kwargs)

    return _make


@pytest.fixture
def price_feed(settings):
    return FakePriceFeed(
        settings,
        spot={"solana": Decimal("160"), "usd-coin": Decimal("1")},
        history={
            ("solana", "14-11-2023"): Decimal("150"),
            ("usd-coin", "14-11-2023"): Decimal("1"),
            ("solana", "20-11-2023"): Decimal("170"),
            ("usd-coin", "20-11-2023"): Decimal("1"),
        },
    )
