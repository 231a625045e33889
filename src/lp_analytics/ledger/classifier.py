"""Reduction of raw transactions into classified flow events."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ..adapters.chain.base import RawTransaction, TokenTransfer
from ..adapters.chain.instructions import attribute_transfers
from ..domain import FlowEvent, OperationKind, TokenAmount, TokenInfo
from ..pricing import to_utc_datetime
from ..units import decimal_to_raw


def transaction_time(tx: RawTransaction) -> datetime | None:
    timestamp = tx.get("timestamp")
    if timestamp is None:
        return None
    return to_utc_datetime(timestamp)


def in_window(timestamp: datetime | None, start: datetime, end: datetime) -> bool:
    """Inclusive window check; undated transactions are always kept."""
    if timestamp is None:
        return True
    return start <= timestamp <= end


def _custody_legs(
    kind: OperationKind, transfers: Iterable[TokenTransfer], token: TokenInfo
) -> tuple[list[TokenTransfer], str]:
    """Transfer legs of ``token`` crossing its vault in the direction of ``kind``.

    Returns the legs and the counterparty of the first one.
    """
    match kind:
        case OperationKind.COLLECT_FEES | OperationKind.DECREASE_LIQUIDITY:
            legs = [
                leg
                for leg in transfers
                if leg.get("mint") == token.mint
                and leg.get("fromTokenAccount") == token.vault
            ]
            counterparty = legs[0].get("fromUserAccount", "") if legs else ""
        case OperationKind.INCREASE_LIQUIDITY:
            legs = [
                leg
                for leg in transfers
                if leg.get("mint") == token.mint
                and leg.get("toTokenAccount") == token.vault
            ]
            counterparty = legs[0].get("toUserAccount", "") if legs else ""
        case OperationKind.OPEN_POSITION:
            legs, counterparty = [], ""
    return legs, counterparty or ""


def _sum_legs(legs: Iterable[TokenTransfer], decimals: int) -> TokenAmount:
    raw = sum(decimal_to_raw(leg.get("tokenAmount", 0), decimals) for leg in legs)
    return TokenAmount(raw=raw, decimals=decimals)


def _transfers_of_kind(
    tx: RawTransaction, kind: OperationKind, program_id: str | None
) -> list[TokenTransfer]:
    """Transfer legs made by ``kind`` instructions of ``tx``.

    Without instruction records every leg is taken, as when no leg can be
    traced to a Whirlpool instruction.
    """
    transfers = tx.get("tokenTransfers") or []
    attributed = attribute_transfers(tx, program_id)
    if attributed is None or all(leg_kind is None for _, leg_kind in attributed):
        return list(transfers)
    return [leg for leg, leg_kind in attributed if leg_kind is kind]


def classify_transaction(
    tx: RawTransaction,
    kind: OperationKind,
    position_id: str,
    token_a: TokenInfo,
    token_b: TokenInfo,
    program_id: str | None = None,
) -> FlowEvent | None:
    """Flow event of one transaction, or None when nothing crossed the vaults.

    Only legs made by a ``kind`` instruction count, so a transaction that
    both decreases liquidity and collects fees splits between the two kinds.
    """
    if kind is OperationKind.OPEN_POSITION or tx.get("transactionError"):
        return None

    transfers = _transfers_of_kind(tx, kind, program_id)
    legs_a, counterparty_a = _custody_legs(kind, transfers, token_a)
    legs_b, counterparty_b = _custody_legs(kind, transfers, token_b)
    amount_a = _sum_legs(legs_a, token_a.decimals)
    amount_b = _sum_legs(legs_b, token_b.decimals)
    if amount_a.raw == 0 and amount_b.raw == 0:
        return None

    return FlowEvent(
        signature=tx.get("signature", ""),
        timestamp=transaction_time(tx),
        operation_kind=kind,
        position_id=position_id,
        counterparty=counterparty_a or counterparty_b,
        amount_a=amount_a,
        amount_b=amount_b,
    )


def classify_transactions(
    transactions: Iterable[RawTransaction],
    kind: OperationKind,
    position_id: str,
    token_a: TokenInfo,
    token_b: TokenInfo,
    start: datetime,
    end: datetime,
    program_id: str | None = None,
) -> tuple[FlowEvent, ...]:
    """Flow events of ``transactions`` inside ``[start, end]``, in input order."""
    events = (
        classify_transaction(tx, kind, position_id, token_a, token_b, program_id)
        for tx in transactions
        if in_window(transaction_time(tx), start, end)
    )
    return tuple(event for event in events if event is not None)
