"""Uncollected fee accrual from Whirlpool fee growth counters.

Fee growth values are Q64.64 fixed point and wrap at 2^128, as on chain:

  below  = outside(lower)           if current >= lower else global - outside(lower)
  above  = outside(upper)           if current <  upper else global - outside(upper)
  inside = global - below - above
  owed   = fee_owed + liquidity * (inside - checkpoint) >> 64
"""

from __future__ import annotations

from ..domain import PoolState, PositionState, TickState

Q128 = 2**128


def fee_growth_inside(
    global_growth: int,
    outside_lower: int,
    outside_upper: int,
    tick_current: int,
    tick_lower: int,
    tick_upper: int,
) -> int:
    if tick_current >= tick_lower:
        below = outside_lower
    else:
        below = (global_growth - outside_lower) % Q128

    if tick_current < tick_upper:
        above = outside_upper
    else:
        above = (global_growth - outside_upper) % Q128

    return (global_growth - below - above) % Q128


def accrued_fee(liquidity: int, growth_inside: int, checkpoint: int) -> int:
    """Raw fee earned by ``liquidity`` since ``checkpoint``."""
    return (liquidity * ((growth_inside - checkpoint) % Q128)) >> 64


def fees_owed_now(
    position: PositionState,
    pool: PoolState,
    lower: TickState,
    upper: TickState,
) -> tuple[int, int]:
    """Raw ``(a, b)`` fees owed to ``position`` at the pool's current tick."""
    owed: list[int] = []
    for global_growth, outside_lower, outside_upper, checkpoint, fee_owed in (
        (
            pool.fee_growth_global_a,
            lower.fee_growth_outside_a,
            upper.fee_growth_outside_a,
            position.fee_growth_checkpoint_a,
            position.fee_owed_a,
        ),
        (
            pool.fee_growth_global_b,
            lower.fee_growth_outside_b,
            upper.fee_growth_outside_b,
            position.fee_growth_checkpoint_b,
            position.fee_owed_b,
        ),
    ):
        inside = fee_growth_inside(
            global_growth,
            outside_lower,
            outside_upper,
            pool.tick_current_index,
            position.tick_lower,
            position.tick_upper,
        )
        owed.append(fee_owed + accrued_fee(position.liquidity, inside, checkpoint))
    return owed[0], owed[1]
