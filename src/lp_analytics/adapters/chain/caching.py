"""Request-scoped read sharing over a blockchain data source."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from ...domain import OperationKind, PoolState, PositionState, TickState
from .base import BaseChainDataSource, RawTransaction
from .instructions import transaction_matches

logger = logging.getLogger(__name__)


class CachingChainSource(BaseChainDataSource):
    """Wraps a data source so each upstream read happens once per request.

    Concurrent callers share one in-flight read and later callers reuse its
    result, failures included. Transaction history is fetched once per
    ``(address, program_filter, limit)`` without a type filter and split by
    operation kind in memory.
    """

    def __init__(self, inner: BaseChainDataSource):
        super().__init__(inner.config)
        self.inner = inner
        self._lookups: dict[Hashable, asyncio.Task[Any]] = {}

    @property
    def source_name(self) -> str:
        return self.inner.source_name

    async def _shared(self, key: Hashable, read: Callable[[], Awaitable[Any]]) -> Any:
        task = self._lookups.get(key)
        if task is None:
            task = asyncio.ensure_future(read())
            self._lookups[key] = task
        else:
            logger.debug("Reusing %s read for %s", self.source_name, key)
        return await asyncio.shield(task)

    async def get_transactions_for_address(
        self,
        address: str,
        program_filter: str | None,
        type_filter: OperationKind | None,
        limit: int,
    ) -> list[RawTransaction]:
        transactions = await self._shared(
            ("transactions", address, program_filter, limit),
            lambda: self.inner.get_transactions_for_address(
                address, program_filter, None, limit
            ),
        )
        return [tx for tx in transactions if transaction_matches(tx, None, type_filter)]

    async def get_position_state(self, position_id: str) -> PositionState | None:
        return await self._shared(
            ("position", position_id),
            lambda: self.inner.get_position_state(position_id),
        )

    async def get_pool_state(self, pool_id: str) -> PoolState | None:
        return await self._shared(
            ("pool", pool_id), lambda: self.inner.get_pool_state(pool_id)
        )

    async def get_mint_decimals(self, mint: str) -> int:
        return await self._shared(
            ("decimals", mint), lambda: self.inner.get_mint_decimals(mint)
        )

    async def get_tick_state(self, pool: PoolState, tick_index: int) -> TickState | None:
        return await self._shared(
            ("tick", pool.address, tick_index),
            lambda: self.inner.get_tick_state(pool, tick_index),
        )
