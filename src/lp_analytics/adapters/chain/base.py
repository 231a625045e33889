from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TypedDict

from ...domain import OperationKind, PoolState, PositionState, TickState
from ...settings import AnalyticsSettings


class TokenTransfer(TypedDict, total=False):
    """One SPL token transfer leg of a parsed transaction."""

    fromTokenAccount: str
    toTokenAccount: str
    fromUserAccount: str
    toUserAccount: str
    tokenAmount: Decimal | str | int
    mint: str


class InstructionRecord(TypedDict, total=False):
    programId: str
    data: str
    accounts: list[str]
    innerInstructions: list["InstructionRecord"]


class RawTransaction(TypedDict, total=False):
    """Parsed transaction record as returned by the data source."""

    signature: str
    timestamp: int | None
    type: str
    fee: int
    feePayer: str
    tokenTransfers: list[TokenTransfer]
    instructions: list[InstructionRecord]
    transactionError: str | None


class BaseChainDataSource(ABC):
    """Read-only access to on-chain transactions and Whirlpool accounts."""

    def __init__(self, config: AnalyticsSettings):
        self.config = config

    @property
    @abstractmethod
    def source_name(self) -> str:
        ...

    @abstractmethod
    async def get_transactions_for_address(
        self,
        address: str,
        program_filter: str | None,
        type_filter: OperationKind | None,
        limit: int,
    ) -> list[RawTransaction]:
        """Transactions touching ``address``, newest first, at most ``limit``.

        With ``program_filter`` only transactions invoking that program are
        returned; with ``type_filter`` only those whose program instruction
        matches the operation kind.
        """
        ...

    @abstractmethod
    async def get_position_state(self, position_id: str) -> PositionState | None:
        """Position account for a position mint, or None if it does not exist."""
        ...

    @abstractmethod
    async def get_pool_state(self, pool_id: str) -> PoolState | None:
        """Whirlpool account state, or None if it does not exist."""
        ...

    @abstractmethod
    async def get_mint_decimals(self, mint: str) -> int:
        ...

    @abstractmethod
    async def get_tick_state(self, pool: PoolState, tick_index: int) -> TickState | None:
        """Fee growth outside ``tick_index`` of ``pool``, None if its tick array is absent."""
        ...
