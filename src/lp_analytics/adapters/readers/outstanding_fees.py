"""Outstanding fees accrued by a position up to now."""

from __future__ import annotations

import asyncio
import logging

from ...domain import OutstandingFees, TokenAmount
from ...processors.fee_math import fees_owed_now
from .base import BaseOutstandingFeesReader

logger = logging.getLogger(__name__)


class PositionFeesReader(BaseOutstandingFeesReader):
    """Fees owed to a position, computed against the pool's current fee growth.

    The position's ``fee_owed_a/b`` only advance at a checkpoint (any
    liquidity change or ``update_fees_and_rewards``). Fees accrued since then
    are derived from the pool's global fee growth, the fee growth outside the
    position's ticks and the position's checkpoint. When a tick array cannot
    be read the checkpointed ``fee_owed`` values are used alone.
    """

    @property
    def reader_name(self) -> str:
        return "position_fee_growth"

    async def get_outstanding_fees(self, position_id: str) -> OutstandingFees:
        position = await self.source.get_position_state(position_id)
        if position is None:
            logger.warning("Position %s not found; outstanding fees are zero", position_id)
            return OutstandingFees.zero()

        pool = await self.source.get_pool_state(position.pool)
        if pool is None:
            logger.warning("Pool %s not found; outstanding fees are zero", position.pool)
            return OutstandingFees.zero()

        decimals_a, decimals_b, lower, upper = await asyncio.gather(
            self.source.get_mint_decimals(pool.token_mint_a),
            self.source.get_mint_decimals(pool.token_mint_b),
            self.source.get_tick_state(pool, position.tick_lower),
            self.source.get_tick_state(pool, position.tick_upper),
        )
        if lower is None or upper is None:
            logger.warning(
                "Tick state of position %s unavailable; using checkpointed fees only",
                position_id,
            )
            raw_a, raw_b = position.fee_owed_a, position.fee_owed_b
        else:
            raw_a, raw_b = fees_owed_now(position, pool, lower, upper)

        fee_a = TokenAmount(raw=raw_a, decimals=decimals_a)
        fee_b = TokenAmount(raw=raw_b, decimals=decimals_b)

        price_a, price_b = await asyncio.gather(
            self.oracle.get_price_usd(pool.token_mint_a),
            self.oracle.get_price_usd(pool.token_mint_b),
        )
        fees = OutstandingFees(
            a=fee_a,
            b=fee_b,
            a_usd=fee_a.human * price_a,
            b_usd=fee_b.human * price_b,
        )
        logger.debug(
            "Outstanding fees for %s: a=%s b=%s usd=%s",
            position_id,
            fee_a.human,
            fee_b.human,
            fees.total_usd,
        )
        return fees
