from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..constants import DAYS_PER_YEAR, SECONDS_PER_DAY
from ..domain import FlowEvent, GasCost, OutstandingFees
from .liquidity_math import PositionValuation

UNDEFINED = Decimal("NaN")

# name -> description, in report order
METRIC_DESCRIPTIONS: dict[str, str] = {
    "price_lower": "Lower bound price of the position range (token B per token A)",
    "price_upper": "Upper bound price of the position range (token B per token A)",
    "price_current": "Current pool price (token B per token A)",
    "price_token_a_usd": "Spot USD price of token A",
    "price_token_b_usd": "Spot USD price of token B",
    "deposited_token_a": "Token A deposited through increase-liquidity flows",
    "deposited_token_b": "Token B deposited through increase-liquidity flows",
    "deposit_value_usd": "V_0: USD value of deposits at the time of each deposit",
    "current_token_a": "Token A currently backing the position liquidity",
    "current_token_b": "Token B currently backing the position liquidity",
    "position_value_usd": "V_pos: current token quantities at spot prices",
    "hodl_value_usd": "V_HODL: deposited token quantities at spot prices",
    "withdrawn_token_a": "Token A withdrawn through decrease-liquidity flows",
    "withdrawn_token_b": "Token B withdrawn through decrease-liquidity flows",
    "withdrawn_usd": "W: USD value of withdrawals at the time of each withdrawal",
    "fees_collected_usd": "F_col: USD value of collected fees at the time of collection",
    "fees_uncollected_usd": "F_uncol: outstanding fees at spot prices",
    "fees_total_usd": "F_col + F_uncol",
    "gas_usd": "Gas: network fees of position transactions at SOL spot price",
    "position_age_days": "t_age: days since the earliest deposit (0 without deposits)",
    "pnl_usd": "PnL: (V_pos + F_col + F_uncol + W) - V_0 - Gas",
    "pnl_ex_gas_usd": "PnL excluding gas: (V_pos + F_col + F_uncol + W) - V_0",
    "pnl_fee_usd": "Fee PnL: (F_col + F_uncol) - Gas",
    "pnl_fee_ex_gas_usd": "Fee PnL excluding gas: F_col + F_uncol",
    "roi": "ROI: PnL / V_0",
    "roi_ex_gas": "ROI excluding gas: PnL_exGas / V_0",
    "roi_fee": "Fee ROI: PnL_fee / V_0",
    "roi_fee_ex_gas": "Fee ROI excluding gas: PnL_fee_exGas / V_0",
    "total_apr": "Total APR: ROI * 365 / t_age",
    "total_apr_ex_gas": "Total APR excluding gas: ROI_exGas * 365 / t_age",
    "fee_apr": "Fee APR: ROI_fee * 365 / t_age",
    "fee_apr_ex_gas": "Fee APR excluding gas: ROI_fee_exGas * 365 / t_age",
    "impermanent_loss_usd": "IL: V_pos - V_HODL",
    "impermanent_loss_pct": "IL / V_HODL",
}


@dataclass(frozen=True)
class MetricInputs:
    """Everything the metric formulas read, already fetched and priced."""

    deposits: tuple[FlowEvent, ...]
    collections: tuple[FlowEvent, ...]
    withdrawals: tuple[FlowEvent, ...]
    valuation: PositionValuation
    outstanding_fees: OutstandingFees
    gas: GasCost
    price_a_usd: Decimal
    price_b_usd: Decimal
    now: datetime


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """``numerator / denominator``, NaN when the denominator is zero."""
    if denominator.is_nan() or denominator == 0 or numerator.is_nan():
        return UNDEFINED
    return numerator / denominator


def annualize(rate: Decimal, age_days: Decimal) -> Decimal:
    if rate.is_nan() or age_days == 0:
        return UNDEFINED
    return rate * DAYS_PER_YEAR / age_days


def position_age_days(deposits: Iterable[FlowEvent], now: datetime) -> Decimal:
    """Days between ``now`` and the earliest dated deposit.

    0 when there is none or when it lies after ``now``.
    """
    timestamps = [event.timestamp for event in deposits if event.timestamp is not None]
    if not timestamps:
        return Decimal(0)
    delta = now - min(timestamps)
    if delta.total_seconds() <= 0:
        return Decimal(0)
    seconds = Decimal(delta.days * SECONDS_PER_DAY + delta.seconds) + Decimal(
        delta.microseconds
    ) / 1_000_000
    return seconds / SECONDS_PER_DAY


def _usd(events: Iterable[FlowEvent]) -> Decimal:
    return sum((event.value_usd for event in events), Decimal(0))


def _quantities(events: Iterable[FlowEvent]) -> tuple[Decimal, Decimal]:
    events = tuple(events)
    return (
        sum((event.amount_a.human for event in events), Decimal(0)),
        sum((event.amount_b.human for event in events), Decimal(0)),
    )


def compute_metrics(inputs: MetricInputs) -> dict[str, Decimal]:
    """Compute every metric of ``METRIC_DESCRIPTIONS`` from ``inputs``.

    Ratios with a zero ``V_0``, ``V_HODL`` or position age are NaN.
    """
    valuation = inputs.valuation
    price_a, price_b = inputs.price_a_usd, inputs.price_b_usd

    deposited_a, deposited_b = _quantities(inputs.deposits)
    withdrawn_a, withdrawn_b = _quantities(inputs.withdrawals)

    v_0 = _usd(inputs.deposits)
    v_pos = valuation.amount_a * price_a + valuation.amount_b * price_b
    v_hodl = deposited_a * price_a + deposited_b * price_b
    withdrawn = _usd(inputs.withdrawals)
    fees_collected = _usd(inputs.collections)
    fees_uncollected = inputs.outstanding_fees.total_usd
    gas = inputs.gas.usd
    age = position_age_days(inputs.deposits, inputs.now)

    pnl_ex_gas = v_pos + fees_collected + fees_uncollected + withdrawn - v_0
    pnl = pnl_ex_gas - gas
    pnl_fee_ex_gas = fees_collected + fees_uncollected
    pnl_fee = pnl_fee_ex_gas - gas

    roi = ratio(pnl, v_0)
    roi_ex_gas = ratio(pnl_ex_gas, v_0)
    roi_fee = ratio(pnl_fee, v_0)
    roi_fee_ex_gas = ratio(pnl_fee_ex_gas, v_0)

    impermanent_loss = v_pos - v_hodl

    return {
        "price_lower": valuation.price_lower,
        "price_upper": valuation.price_upper,
        "price_current": valuation.price_current,
        "price_token_a_usd": price_a,
        "price_token_b_usd": price_b,
        "deposited_token_a": deposited_a,
        "deposited_token_b": deposited_b,
        "deposit_value_usd": v_0,
        "current_token_a": valuation.amount_a,
        "current_token_b": valuation.amount_b,
        "position_value_usd": v_pos,
        "hodl_value_usd": v_hodl,
        "withdrawn_token_a": withdrawn_a,
        "withdrawn_token_b": withdrawn_b,
        "withdrawn_usd": withdrawn,
        "fees_collected_usd": fees_collected,
        "fees_uncollected_usd": fees_uncollected,
        "fees_total_usd": pnl_fee_ex_gas,
        "gas_usd": gas,
        "position_age_days": age,
        "pnl_usd": pnl,
        "pnl_ex_gas_usd": pnl_ex_gas,
        "pnl_fee_usd": pnl_fee,
        "pnl_fee_ex_gas_usd": pnl_fee_ex_gas,
        "roi": roi,
        "roi_ex_gas": roi_ex_gas,
        "roi_fee": roi_fee,
        "roi_fee_ex_gas": roi_fee_ex_gas,
        "total_apr": annualize(roi, age),
        "total_apr_ex_gas": annualize(roi_ex_gas, age),
        "fee_apr": annualize(roi_fee, age),
        "fee_apr_ex_gas": annualize(roi_fee_ex_gas, age),
        "impermanent_loss_usd": impermanent_loss,
        "impermanent_loss_pct": ratio(impermanent_loss, v_hodl),
    }
