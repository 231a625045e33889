"""Whirlpool instruction decoding over parsed transaction records."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator

import base58

from ...constants import TOKEN_PROGRAM_IDS, WHIRLPOOL_INSTRUCTIONS
from ...domain import OperationKind
from .base import InstructionRecord, RawTransaction, TokenTransfer

# SPL token instruction tags
TRANSFER = 3
TRANSFER_CHECKED = 12


def instruction_discriminator(name: str) -> bytes:
    """Anchor discriminator of a program instruction: sha256("global:<name>")[:8]."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


KIND_DISCRIMINATORS: dict[OperationKind, frozenset[bytes]] = {
    OperationKind(kind): frozenset(instruction_discriminator(name) for name in names)
    for kind, names in WHIRLPOOL_INSTRUCTIONS.items()
}


def _data(instruction: InstructionRecord) -> bytes:
    try:
        return base58.b58decode(instruction.get("data") or "")
    except ValueError:
        return b""


def iter_instructions(tx: RawTransaction) -> Iterator[InstructionRecord]:
    for instruction in tx.get("instructions") or []:
        yield instruction
        yield from instruction.get("innerInstructions") or []


def instruction_kind(
    instruction: InstructionRecord, program_filter: str | None = None
) -> OperationKind | None:
    """Operation kind of a Whirlpool instruction, None for any other instruction."""
    if program_filter and instruction.get("programId") != program_filter:
        return None
    prefix = _data(instruction)[:8]
    for kind, discriminators in KIND_DISCRIMINATORS.items():
        if prefix in discriminators:
            return kind
    return None


def transaction_matches(
    tx: RawTransaction,
    program_filter: str | None,
    type_filter: OperationKind | None,
) -> bool:
    """Whether ``tx`` invokes ``program_filter`` with an instruction of ``type_filter``."""
    if program_filter is None and type_filter is None:
        return True
    for instruction in iter_instructions(tx):
        if program_filter and instruction.get("programId") != program_filter:
            continue
        if type_filter is None or instruction_kind(instruction) is type_filter:
            return True
    return False


def token_transfer_accounts(instruction: InstructionRecord) -> tuple[str, str] | None:
    """``(source, destination)`` token accounts of an SPL transfer instruction."""
    if instruction.get("programId") not in TOKEN_PROGRAM_IDS:
        return None
    data = _data(instruction)
    accounts = instruction.get("accounts") or []
    if not data:
        return None
    if data[0] == TRANSFER and len(accounts) >= 2:
        return accounts[0], accounts[1]
    if data[0] == TRANSFER_CHECKED and len(accounts) >= 3:
        return accounts[0], accounts[2]
    return None


def attribute_transfers(
    tx: RawTransaction, program_filter: str | None = None
) -> list[tuple[TokenTransfer, OperationKind | None]] | None:
    """Pair each token transfer of ``tx`` with the kind of the instruction that made it.

    Transfers and token-program instructions are both in execution order, so
    each transfer takes the first unclaimed instruction moving funds between
    the same two accounts. Transfers outside any Whirlpool instruction get
    None. Returns None when ``tx`` carries no instruction records.
    """
    instructions = tx.get("instructions") or []
    if not instructions:
        return None

    moves: list[tuple[str, str, OperationKind | None]] = []
    for instruction in instructions:
        accounts = token_transfer_accounts(instruction)
        if accounts:
            moves.append((*accounts, None))
        parent = instruction_kind(instruction, program_filter)
        for inner in instruction.get("innerInstructions") or []:
            accounts = token_transfer_accounts(inner)
            if accounts:
                moves.append((*accounts, parent))

    claimed = [False] * len(moves)
    attributed: list[tuple[TokenTransfer, OperationKind | None]] = []
    for leg in tx.get("tokenTransfers") or []:
        kind = None
        for i, (source, destination, parent) in enumerate(moves):
            if (
                not claimed[i]
                and source == leg.get("fromTokenAccount")
                and destination == leg.get("toTokenAccount")
            ):
                claimed[i] = True
                kind = parent
                break
        attributed.append((leg, kind))
    return attributed
