"""Domain models for position ledgers and on-chain state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ..units import raw_to_decimal


class OperationKind(str, Enum):
    OPEN_POSITION = "OPEN_POSITION"
    INCREASE_LIQUIDITY = "INCREASE_LIQUIDITY"
    DECREASE_LIQUIDITY = "DECREASE_LIQUIDITY"
    COLLECT_FEES = "COLLECT_FEES"

    @classmethod
    def parse(cls, value: str | OperationKind) -> OperationKind:
        """Parse a kind name case-insensitively."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown operation {value!r}")
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown operation '{value}'. "
                f"Available: {', '.join(kind.value for kind in cls)}"
            ) from None


ALL_OPERATION_KINDS: tuple[OperationKind, ...] = tuple(OperationKind)


@dataclass(frozen=True)
class TokenAmount:
    """A raw integer amount in the token's smallest unit plus its decimals."""

    raw: int
    decimals: int

    @classmethod
    def zero(cls, decimals: int) -> TokenAmount:
        return cls(raw=0, decimals=decimals)

    @property
    def human(self) -> Decimal:
        return raw_to_decimal(self.raw, self.decimals)

    def __add__(self, other: TokenAmount) -> TokenAmount:
        if self.decimals != other.decimals:
            raise ValueError(
                f"Cannot add amounts with {self.decimals} and {other.decimals} decimals"
            )
        return TokenAmount(raw=self.raw + other.raw, decimals=self.decimals)


@dataclass(frozen=True)
class TokenInfo:
    """One side of a pool: mint, decimals and the pool's custody vault."""

    mint: str
    decimals: int
    vault: str

    @classmethod
    def empty(cls) -> TokenInfo:
        return cls(mint="", decimals=0, vault="")

    def to_dict(self) -> dict[str, object]:
        return {"mint": self.mint, "decimals": self.decimals, "vault": self.vault}


@dataclass(frozen=True)
class FlowEvent:
    """One classified cash-flow line of a position ledger."""

    signature: str
    timestamp: datetime | None
    operation_kind: OperationKind
    position_id: str
    counterparty: str
    amount_a: TokenAmount
    amount_b: TokenAmount
    amount_a_usd: Decimal = Decimal(0)
    amount_b_usd: Decimal = Decimal(0)

    @property
    def value_usd(self) -> Decimal:
        return self.amount_a_usd + self.amount_b_usd

    def to_dict(self) -> dict[str, object]:
        return {
            "signature": self.signature,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "operation": self.operation_kind.value,
            "position_id": self.position_id,
            "counterparty": self.counterparty,
            "amount_a": {"raw": str(self.amount_a.raw), "amount": str(self.amount_a.human)},
            "amount_b": {"raw": str(self.amount_b.raw), "amount": str(self.amount_b.human)},
            "amount_a_usd": str(self.amount_a_usd),
            "amount_b_usd": str(self.amount_b_usd),
        }


@dataclass(frozen=True)
class LedgerBundle:
    """Classified flows of one position plus the pool metadata used to build them.

    ``items`` keep the data source's retrieval order. Sort explicitly when
    chronological order is needed.
    """

    pool_address: str
    position_address: str
    position_id: str
    token_a: TokenInfo
    token_b: TokenInfo
    items: tuple[FlowEvent, ...] = ()
    opened_at: datetime | None = None

    @classmethod
    def empty(cls, position_id: str) -> LedgerBundle:
        """Bundle returned when the position cannot be found."""
        return cls(
            pool_address="",
            position_address="",
            position_id=position_id,
            token_a=TokenInfo.empty(),
            token_b=TokenInfo.empty(),
        )

    @property
    def found(self) -> bool:
        return bool(self.token_a.mint)

    def of_kind(self, kind: OperationKind) -> tuple[FlowEvent, ...]:
        return tuple(item for item in self.items if item.operation_kind is kind)

    def to_dict(self) -> dict[str, object]:
        return {
            "metadata": {
                "pool": self.pool_address,
                "position": self.position_address,
                "position_id": self.position_id,
                "token_a": self.token_a.to_dict(),
                "token_b": self.token_b.to_dict(),
                "opened_at": self.opened_at.isoformat() if self.opened_at else None,
            },
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class PositionState:
    """Decoded Whirlpool position account."""

    address: str
    position_mint: str
    pool: str
    liquidity: int
    tick_lower: int
    tick_upper: int
    fee_owed_a: int = 0
    fee_owed_b: int = 0
    fee_growth_checkpoint_a: int = 0
    fee_growth_checkpoint_b: int = 0


@dataclass(frozen=True)
class PoolState:
    """Decoded Whirlpool pool account. ``sqrt_price`` is Q64.64 fixed point."""

    address: str
    token_mint_a: str
    token_mint_b: str
    vault_a: str
    vault_b: str
    sqrt_price: int
    tick_current_index: int = 0
    tick_spacing: int = 0
    fee_rate: int = 0
    fee_growth_global_a: int = 0
    fee_growth_global_b: int = 0


@dataclass(frozen=True)
class TickState:
    """Fee growth recorded outside one initialized tick, Q64.64 fixed point."""

    index: int
    initialized: bool
    fee_growth_outside_a: int = 0
    fee_growth_outside_b: int = 0


@dataclass(frozen=True)
class PositionSnapshot:
    """Current state of a position and its pool at request time."""

    position: PositionState
    pool: PoolState
    decimals_a: int
    decimals_b: int

    @property
    def token_a(self) -> TokenInfo:
        return TokenInfo(
            mint=self.pool.token_mint_a, decimals=self.decimals_a, vault=self.pool.vault_a
        )

    @property
    def token_b(self) -> TokenInfo:
        return TokenInfo(
            mint=self.pool.token_mint_b, decimals=self.decimals_b, vault=self.pool.vault_b
        )


@dataclass(frozen=True)
class OutstandingFees:
    """Uncollected fee balances of a position, valued in USD."""

    a: TokenAmount
    b: TokenAmount
    a_usd: Decimal = Decimal(0)
    b_usd: Decimal = Decimal(0)

    @classmethod
    def zero(cls, decimals_a: int = 0, decimals_b: int = 0) -> OutstandingFees:
        return cls(a=TokenAmount.zero(decimals_a), b=TokenAmount.zero(decimals_b))

    @property
    def total_usd(self) -> Decimal:
        return self.a_usd + self.b_usd


@dataclass(frozen=True)
class GasEvent:
    signature: str
    timestamp: datetime | None
    lamports: int


@dataclass(frozen=True)
class GasCost:
    """Network fees paid by transactions touching a position."""

    lamports: int
    sol: Decimal
    usd: Decimal
    history: tuple[GasEvent, ...] = field(default_factory=tuple)

    @classmethod
    def zero(cls) -> GasCost:
        return cls(lamports=0, sol=Decimal(0), usd=Decimal(0))


__all__ = [
    "ALL_OPERATION_KINDS",
    "FlowEvent",
    "GasCost",
    "GasEvent",
    "LedgerBundle",
    "OperationKind",
    "OutstandingFees",
    "PoolState",
    "PositionSnapshot",
    "PositionState",
    "TickState",
    "TokenAmount",
    "TokenInfo",
]
