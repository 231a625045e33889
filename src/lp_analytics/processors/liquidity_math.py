"""Concentrated-liquidity math for Whirlpool positions.

Formulas follow the Uniswap V3 whitepaper (section 6), which Whirlpools share:

  price(i)   = 1.0001^i, so sqrt_price(i) = sqrt(1.0001)^i
  below range (sqrtP <= sqrtPL):  A = L (sqrtPU - sqrtPL) / (sqrtPL sqrtPU), B = 0
  above range (sqrtP >= sqrtPU):  A = 0, B = L (sqrtPU - sqrtPL)
  in range:                        A = L (sqrtPU - sqrtP) / (sqrtP sqrtPU),
                                   B = L (sqrtP - sqrtPL)

All arithmetic is Decimal in a local high-precision context.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext

from ..domain import PositionSnapshot, TokenAmount

PRECISION = 60
Q64 = 2**64
TICK_BASE = Decimal("1.0001")


@dataclass(frozen=True)
class PositionValuation:
    """Token quantities held by a position and its price bounds, both human units."""

    amount_a: Decimal
    amount_b: Decimal
    price_lower: Decimal
    price_upper: Decimal
    price_current: Decimal


def sqrt_price_from_x64(sqrt_price_x64: int) -> Decimal:
    """Convert a Q64.64 fixed point square-root price to a Decimal."""
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return Decimal(sqrt_price_x64) / Decimal(Q64)


def tick_to_sqrt_price(tick: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return TICK_BASE.sqrt() ** tick


def token_amounts_from_liquidity(
    liquidity: int,
    sqrt_price: Decimal,
    sqrt_lower: Decimal,
    sqrt_upper: Decimal,
) -> tuple[int, int]:
    """Raw token A and B amounts backing ``liquidity``, rounded down."""
    if sqrt_lower >= sqrt_upper:
        raise ValueError("lower sqrt price must be below upper sqrt price")

    with localcontext() as ctx:
        ctx.prec = PRECISION
        L = Decimal(liquidity)
        if sqrt_price <= sqrt_lower:
            amount_a = L * (sqrt_upper - sqrt_lower) / (sqrt_lower * sqrt_upper)
            amount_b = Decimal(0)
        elif sqrt_price >= sqrt_upper:
            amount_a = Decimal(0)
            amount_b = L * (sqrt_upper - sqrt_lower)
        else:
            amount_a = L * (sqrt_upper - sqrt_price) / (sqrt_price * sqrt_upper)
            amount_b = L * (sqrt_price - sqrt_lower)

        return (
            int(amount_a.to_integral_value(rounding=ROUND_DOWN)),
            int(amount_b.to_integral_value(rounding=ROUND_DOWN)),
        )


def price_bounds(
    sqrt_lower: Decimal,
    sqrt_upper: Decimal,
    sqrt_price: Decimal,
    decimals_a: int,
    decimals_b: int,
) -> tuple[Decimal, Decimal, Decimal]:
    """``(lower, upper, current)`` prices scaled by ``10^|decB - decA|``."""
    with localcontext() as ctx:
        ctx.prec = PRECISION
        # NOTE: the adjustment uses the absolute decimal difference for both orientations
        adjustment = Decimal(10) ** abs(decimals_b - decimals_a)
        return (
            sqrt_lower * sqrt_lower * adjustment,
            sqrt_upper * sqrt_upper * adjustment,
            sqrt_price * sqrt_price * adjustment,
        )


def value_position(snapshot: PositionSnapshot) -> PositionValuation:
    """Current token quantities and price bounds of a position."""
    position = snapshot.position
    sqrt_price = sqrt_price_from_x64(snapshot.pool.sqrt_price)
    sqrt_lower = tick_to_sqrt_price(position.tick_lower)
    sqrt_upper = tick_to_sqrt_price(position.tick_upper)

    raw_a, raw_b = token_amounts_from_liquidity(
        position.liquidity, sqrt_price, sqrt_lower, sqrt_upper
    )
    lower, upper, current = price_bounds(
        sqrt_lower, sqrt_upper, sqrt_price, snapshot.decimals_a, snapshot.decimals_b
    )
    return PositionValuation(
        amount_a=TokenAmount(raw_a, snapshot.decimals_a).human,
        amount_b=TokenAmount(raw_b, snapshot.decimals_b).human,
        price_lower=lower,
        price_upper=upper,
        price_current=current,
    )
