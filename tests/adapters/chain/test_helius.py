import base64
import struct

import base58
import pytest

from lp_analytics.adapters.chain import get_chain_source_class, helius
from lp_analytics.adapters.chain.helius import (
    HeliusChainDataSource,
    HeliusRpcError,
    TICK_ARRAY_SIZE,
    decode_position,
    decode_tick,
    decode_whirlpool,
    instruction_discriminator,
    tick_array_start_index,
    transaction_matches,
)
from lp_analytics.constants import WHIRLPOOL_PROGRAM_ID
from lp_analytics.domain import OperationKind

POOL_KEY = bytes(range(1, 33))
MINT_KEY = bytes(range(33, 65))
MINT_A_KEY = bytes([7] * 32)
VAULT_A_KEY = bytes([8] * 32)
MINT_B_KEY = bytes([9] * 32)
VAULT_B_KEY = bytes([10] * 32)


def b58(key: bytes) -> str:
    return base58.b58encode(key).decode()


def position_bytes(liquidity=123_456_789_012_345_678_901, lower=-1000, upper=2000) -> bytes:
    data = bytearray(216)
    data[0:8] = b"\x01" * 8
    data[8:40] = POOL_KEY
    data[40:72] = MINT_KEY
    data[72:88] = liquidity.to_bytes(16, "little")
    struct.pack_into("<ii", data, 88, lower, upper)
    data[96:112] = (11 << 64).to_bytes(16, "little")
    struct.pack_into("<Q", data, 112, 5_000)
    data[120:136] = (13 << 64).to_bytes(16, "little")
    struct.pack_into("<Q", data, 136, 7_000)
    return bytes(data)


def whirlpool_bytes(sqrt_price=2**64, tick=-5) -> bytes:
    data = bytearray(653)
    struct.pack_into("<H", data, 41, 64)
    struct.pack_into("<H", data, 45, 3000)
    data[65:81] = sqrt_price.to_bytes(16, "little")
    struct.pack_into("<i", data, 81, tick)
    data[101:133] = MINT_A_KEY
    data[133:165] = VAULT_A_KEY
    data[165:181] = (17 << 64).to_bytes(16, "little")
    data[181:213] = MINT_B_KEY
    data[213:245] = VAULT_B_KEY
    data[245:261] = (19 << 64).to_bytes(16, "little")
    return bytes(data)


def instruction(name: str, program: str = WHIRLPOOL_PROGRAM_ID) -> dict:
    return {
        "programId": program,
        "data": b58(instruction_discriminator(name) + b"\x00" * 16),
        "innerInstructions": [],
    }


def test_decode_position_reads_fixed_offsets():
    position = decode_position("PosAcct", position_bytes())

    assert position.address == "PosAcct"
    assert position.pool == b58(POOL_KEY)
    assert position.position_mint == b58(MINT_KEY)
    assert position.liquidity == 123_456_789_012_345_678_901
    assert (position.tick_lower, position.tick_upper) == (-1000, 2000)
    assert (position.fee_owed_a, position.fee_owed_b) == (5_000, 7_000)
    assert position.fee_growth_checkpoint_a == 11 << 64
    assert position.fee_growth_checkpoint_b == 13 << 64


def test_decode_position_rejects_short_data():
    with pytest.raises(ValueError, match="too short"):
        decode_position("PosAcct", b"\x00" * 100)


def test_decode_whirlpool_reads_fixed_offsets():
    pool = decode_whirlpool("Pool", whirlpool_bytes(sqrt_price=3 * 2**64, tick=-42))

    assert pool.sqrt_price == 3 * 2**64
    assert pool.tick_current_index == -42
    assert pool.fee_rate == 3000
    assert pool.token_mint_a == b58(MINT_A_KEY)
    assert pool.vault_a == b58(VAULT_A_KEY)
    assert pool.token_mint_b == b58(MINT_B_KEY)
    assert pool.vault_b == b58(VAULT_B_KEY)
    assert pool.tick_spacing == 64
    assert (pool.fee_growth_global_a, pool.fee_growth_global_b) == (17 << 64, 19 << 64)


def test_transaction_matches_on_instruction_discriminator():
    tx = {"instructions": [instruction("increase_liquidity_v2")]}

    assert transaction_matches(tx, WHIRLPOOL_PROGRAM_ID, OperationKind.INCREASE_LIQUIDITY)
    assert not transaction_matches(tx, WHIRLPOOL_PROGRAM_ID, OperationKind.DECREASE_LIQUIDITY)
    assert not transaction_matches(tx, "OtherProgram", OperationKind.INCREASE_LIQUIDITY)
    assert transaction_matches(tx, WHIRLPOOL_PROGRAM_ID, None)


def test_transaction_matches_inner_instructions():
    outer = {"programId": "Router", "data": "", "innerInstructions": [instruction("collect_fees")]}

    assert transaction_matches(
        {"instructions": [outer]}, WHIRLPOOL_PROGRAM_ID, OperationKind.COLLECT_FEES
    )


@pytest.fixture
def source(settings):
    return HeliusChainDataSource(settings)


@pytest.mark.asyncio
async def test_transactions_are_paginated_and_filtered(settings, monkeypatch):
    source = HeliusChainDataSource(settings.model_copy(update={"transaction_page_size": 2}))
    pages = {
        None: [
            {"signature": "s1", "instructions": [instruction("increase_liquidity")]},
            {"signature": "s2", "instructions": [instruction("collect_fees")]},
        ],
        "s2": [
            {"signature": "s3", "instructions": [instruction("increase_liquidity")]},
        ],
    }
    requested: list[tuple[str | None, int]] = []

    def fake_page(address, before, limit):
        requested.append((before, limit))
        return pages[before]

    monkeypatch.setattr(source, "_transactions_page", fake_page)

    result = await source.get_transactions_for_address(
        "PosAcct", WHIRLPOOL_PROGRAM_ID, OperationKind.INCREASE_LIQUIDITY, 10
    )

    assert [tx["signature"] for tx in result] == ["s1", "s3"]
    assert requested == [(None, 2), ("s2", 2)]


@pytest.mark.asyncio
async def test_transactions_stop_at_limit(settings, monkeypatch):
    source = HeliusChainDataSource(settings.model_copy(update={"transaction_page_size": 2}))
    requested: list[int] = []

    def fake_page(address, before, limit):
        requested.append(limit)
        return [{"signature": f"{before}-{i}"} for i in range(limit)]

    monkeypatch.setattr(source, "_transactions_page", fake_page)

    result = await source.get_transactions_for_address("PosAcct", None, None, 3)

    assert len(result) == 3
    assert requested == [2, 1]


@pytest.mark.asyncio
async def test_position_found_by_mint(source, monkeypatch):
    calls = []

    def fake_rpc(method, params):
        calls.append((method, params))
        return [
            {
                "pubkey": "PosAcct",
                "account": {"data": [base64.b64encode(position_bytes()).decode(), "base64"]},
            }
        ]

    monkeypatch.setattr(source, "_rpc", fake_rpc)

    position = await source.get_position_state(b58(MINT_KEY))

    assert position is not None
    assert position.address == "PosAcct"
    method, params = calls[0]
    assert method == "getProgramAccounts"
    assert params[1]["filters"] == [
        {"dataSize": 216},
        {"memcmp": {"offset": 40, "bytes": b58(MINT_KEY)}},
    ]


@pytest.mark.asyncio
async def test_missing_position_returns_none(source, monkeypatch):
    def fake_rpc(method, params):
        if method == "getProgramAccounts":
            return []
        return {"context": {"slot": 1}, "value": None}

    monkeypatch.setattr(source, "_rpc", fake_rpc)

    assert await source.get_position_state("Unknown") is None


@pytest.mark.asyncio
async def test_pool_state_decoded_from_account_info(source, monkeypatch):
    def fake_rpc(method, params):
        assert method == "getAccountInfo"
        return {
            "value": {
                "owner": WHIRLPOOL_PROGRAM_ID,
                "data": [base64.b64encode(whirlpool_bytes()).decode(), "base64"],
            }
        }

    monkeypatch.setattr(source, "_rpc", fake_rpc)

    pool = await source.get_pool_state("Pool")

    assert pool is not None
    assert pool.token_mint_a == b58(MINT_A_KEY)


@pytest.mark.asyncio
async def test_pool_owned_by_other_program_is_not_a_pool(source, monkeypatch):
    monkeypatch.setattr(
        source,
        "_rpc",
        lambda method, params: {
            "value": {"owner": "Other", "data": [base64.b64encode(whirlpool_bytes()).decode(), "base64"]}
        },
    )

    assert await source.get_pool_state("Pool") is None


@pytest.mark.asyncio
async def test_mint_decimals_are_cached(source, monkeypatch):
    calls = []

    def fake_rpc(method, params):
        calls.append(params[0])
        return {"value": {"data": {"parsed": {"info": {"decimals": 6}}}}}

    monkeypatch.setattr(source, "_rpc", fake_rpc)

    assert await source.get_mint_decimals("Mint") == 6
    assert await source.get_mint_decimals("Mint") == 6
    assert calls == ["Mint"]


@pytest.mark.asyncio
async def test_non_mint_account_raises(source, monkeypatch):
    monkeypatch.setattr(source, "_rpc", lambda method, params: {"value": None})

    with pytest.raises(ValueError, match="not a token mint"):
        await source.get_mint_decimals("Wallet")


def test_rpc_error_object_raises(source, monkeypatch):
    class Response:
        def raise_for_status(self):
            return None

        def json(self):
            return {"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad params"}}

    monkeypatch.setattr(helius.requests, "post", lambda *args, **kwargs: Response())

    with pytest.raises(HeliusRpcError, match="bad params"):
        source._rpc("getAccountInfo", ["x"])


def test_registry_returns_helius():
    assert get_chain_source_class("Helius") is HeliusChainDataSource


def tick_array_bytes(start: int, entries: dict[int, tuple[int, int]]) -> bytes:
    """``TickArray`` account with ``slot -> (outside_a, outside_b)`` entries."""
    data = bytearray(TICK_ARRAY_SIZE)
    struct.pack_into("<i", data, 8, start)
    for slot, (outside_a, outside_b) in entries.items():
        offset = 12 + slot * 113
        data[offset] = 1
        data[offset + 33 : offset + 49] = outside_a.to_bytes(16, "little")
        data[offset + 49 : offset + 65] = outside_b.to_bytes(16, "little")
    data[9956:9988] = POOL_KEY
    return bytes(data)


@pytest.mark.parametrize(
    ("tick", "spacing", "start"),
    [(0, 64, 0), (5631, 64, 0), (5632, 64, 5632), (-1, 64, -5632), (-5633, 64, -11264)],
)
def test_tick_array_start_index(tick, spacing, start):
    assert tick_array_start_index(tick, spacing) == start


def test_decode_tick_reads_slot():
    data = tick_array_bytes(-5632, {3: (100, 200)})

    tick = decode_tick(data, -5632 + 3 * 64, 64)

    assert tick.initialized
    assert (tick.fee_growth_outside_a, tick.fee_growth_outside_b) == (100, 200)
    assert not decode_tick(data, -5632, 64).initialized


def test_decode_tick_rejects_tick_outside_array():
    with pytest.raises(ValueError, match="not in the array"):
        decode_tick(tick_array_bytes(0, {}), 64 * 88, 64)


@pytest.mark.asyncio
async def test_tick_state_found_by_pool_and_start(source, monkeypatch):
    calls = []
    pool = decode_whirlpool(b58(POOL_KEY), whirlpool_bytes())

    def fake_rpc(method, params):
        calls.append((method, params))
        encoded = base64.b64encode(tick_array_bytes(-5632, {87: (5, 6)})).decode()
        return [{"pubkey": "TickArray", "account": {"data": [encoded, "base64"]}}]

    monkeypatch.setattr(source, "_rpc", fake_rpc)

    tick = await source.get_tick_state(pool, -64)

    assert (tick.fee_growth_outside_a, tick.fee_growth_outside_b) == (5, 6)
    method, params = calls[0]
    assert method == "getProgramAccounts"
    assert params[1]["filters"] == [
        {"dataSize": TICK_ARRAY_SIZE},
        {"memcmp": {"offset": 9956, "bytes": b58(POOL_KEY)}},
        {"memcmp": {"offset": 8, "bytes": b58(struct.pack("<i", -5632))}},
    ]


@pytest.mark.asyncio
async def test_missing_tick_array_returns_none(source, monkeypatch):
    monkeypatch.setattr(source, "_rpc", lambda method, params: [])
    pool = decode_whirlpool("Pool", whirlpool_bytes())

    assert await source.get_tick_state(pool, 128) is None
