"""Position ledger extraction and USD enrichment."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ..adapters.chain.base import BaseChainDataSource, RawTransaction
from ..constants import EARLIEST_UTC
from ..domain import FlowEvent, LedgerBundle, OperationKind, TokenAmount, TokenInfo
from ..errors import UpstreamUnavailableError
from ..pricing import PriceOracle
from .classifier import classify_transactions, transaction_time

logger = logging.getLogger(__name__)


def parse_utc(value: str | datetime | None, default: datetime) -> datetime:
    """Parse an ISO 8601 value into an aware UTC datetime.

    Naive values are read as UTC.

    Raises:
        ValueError: If ``value`` is not a valid ISO 8601 date or datetime.
    """
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Invalid UTC date: {value!r}") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_window(
    start_utc: str | datetime | None,
    end_utc: str | datetime | None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Inclusive ``[start, end]`` window; defaults to the epoch through tomorrow."""
    now = now or datetime.now(timezone.utc)
    start = parse_utc(start_utc, EARLIEST_UTC)
    end = parse_utc(end_utc, now + timedelta(days=1))
    if end < start:
        raise ValueError(f"endUtc < startUtc ({end.isoformat()} < {start.isoformat()})")
    return start, end


def _dedupe_kinds(operation_kinds: Iterable[OperationKind | str]) -> list[OperationKind]:
    kinds: list[OperationKind] = []
    for value in operation_kinds:
        kind = OperationKind.parse(value)
        if kind not in kinds:
            kinds.append(kind)
    return kinds


class LedgerExtractor:
    """Builds the classified, USD-valued flow ledger of one position.

    Items are grouped by requested operation kind, in request order, and keep
    the data source's retrieval order inside each group (newest first for
    Helius). They are never re-sorted; sort by ``timestamp`` when
    chronological order matters.
    """

    def __init__(
        self,
        source: BaseChainDataSource,
        oracle: PriceOracle,
        program_id: str,
        transaction_limit: int,
    ):
        self.source = source
        self.oracle = oracle
        self.program_id = program_id
        self.transaction_limit = transaction_limit

    async def extract_flows(
        self,
        position_id: str,
        operation_kinds: Iterable[OperationKind | str],
        start_utc: str | datetime | None = None,
        end_utc: str | datetime | None = None,
    ) -> LedgerBundle:
        """Extract the flows of ``position_id`` for ``operation_kinds``.

        Returns ``LedgerBundle.empty`` when the position or its pool does not
        exist. Any data-source failure raises ``UpstreamUnavailableError``;
        price failures only zero the affected USD values.
        """
        start, end = resolve_window(start_utc, end_utc)
        kinds = _dedupe_kinds(operation_kinds)

        try:
            position = await self.source.get_position_state(position_id)
            pool = await self.source.get_pool_state(position.pool) if position else None
            if position is None or pool is None:
                logger.info("Position %s not found; returning empty ledger", position_id)
                return LedgerBundle.empty(position_id)

            decimals_a, decimals_b = await asyncio.gather(
                self.source.get_mint_decimals(pool.token_mint_a),
                self.source.get_mint_decimals(pool.token_mint_b),
            )
        except Exception as exc:
            logger.error("Failed to read position %s: %s", position_id, exc)
            raise UpstreamUnavailableError(
                f"Failed to read position {position_id} from {self.source.source_name}: {exc}"
            ) from exc

        token_a = TokenInfo(mint=pool.token_mint_a, decimals=decimals_a, vault=pool.vault_a)
        token_b = TokenInfo(mint=pool.token_mint_b, decimals=decimals_b, vault=pool.vault_b)

        per_kind = await self._fetch_transactions(position.address, kinds)

        events: list[FlowEvent] = []
        opened_at: datetime | None = None
        for kind, transactions in zip(kinds, per_kind):
            if kind is OperationKind.OPEN_POSITION:
                opened_at = _earliest(transactions)
                continue
            events.extend(
                classify_transactions(
                    transactions,
                    kind,
                    position_id,
                    token_a,
                    token_b,
                    start,
                    end,
                    self.program_id,
                )
            )

        # Enrichment starts only once every transaction list is complete.
        enriched = await asyncio.gather(
            *(self._enrich(event, token_a, token_b) for event in events)
        )

        logger.debug(
            "Ledger for %s: %d flow events across %s",
            position_id,
            len(enriched),
            ", ".join(kind.value for kind in kinds),
        )
        return LedgerBundle(
            pool_address=pool.address,
            position_address=position.address,
            position_id=position_id,
            token_a=token_a,
            token_b=token_b,
            items=tuple(enriched),
            opened_at=opened_at,
        )

    async def _fetch_transactions(
        self, address: str, kinds: list[OperationKind]
    ) -> list[list[RawTransaction]]:
        results = await asyncio.gather(
            *(
                self.source.get_transactions_for_address(
                    address, self.program_id, kind, self.transaction_limit
                )
                for kind in kinds
            ),
            return_exceptions=True,
        )

        failures: list[tuple[OperationKind, BaseException]] = []
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                logger.error("Fetching %s transactions failed: %s", kind.value, result)
                failures.append((kind, result))
            else:
                logger.debug("Fetched %d %s transactions", len(result), kind.value)

        if failures:
            failure_list = ", ".join(kind.value for kind, _ in failures)
            raise UpstreamUnavailableError(
                f"Failed to fetch transactions for {len(failures)} operation kind(s): "
                f"{failure_list}"
            ) from failures[0][1]
        return list(results)  # type: ignore[arg-type]

    async def _enrich(
        self, event: FlowEvent, token_a: TokenInfo, token_b: TokenInfo
    ) -> FlowEvent:
        async def value(mint: str, amount: TokenAmount) -> Decimal:
            if amount.raw == 0:
                return Decimal(0)
            price = await self.oracle.get_price_usd(mint, event.timestamp)
            return amount.human * price

        amount_a_usd, amount_b_usd = await asyncio.gather(
            value(token_a.mint, event.amount_a),
            value(token_b.mint, event.amount_b),
        )
        return dataclasses.replace(
            event, amount_a_usd=amount_a_usd, amount_b_usd=amount_b_usd
        )


def _earliest(transactions: list[RawTransaction]) -> datetime | None:
    timestamps = [ts for ts in map(transaction_time, transactions) if ts is not None]
    return min(timestamps) if timestamps else None
