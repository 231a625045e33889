"""Metric computation and report assembly."""

from __future__ import annotations

import asyncio

from ..domain import OperationKind
from ..processors import MetricInputs, compute_metrics, value_position
from ..report import generate_report
from .context import PipelineContext


async def build_report(ctx: PipelineContext) -> None:
    """Price the position at spot, compute metrics and set the report in the context."""
    log = ctx.state.logger
    snapshot = ctx.snapshot_required
    oracle = ctx.services.oracle

    price_a, price_b = await asyncio.gather(
        oracle.get_price_usd(snapshot.pool.token_mint_a),
        oracle.get_price_usd(snapshot.pool.token_mint_b),
    )
    if price_a == 0 or price_b == 0:
        log.warning(
            "Spot price unavailable (a=%s, b=%s); position values are understated",
            price_a,
            price_b,
        )

    inputs = MetricInputs(
        deposits=ctx.ledgers[OperationKind.INCREASE_LIQUIDITY.value].items,
        collections=ctx.ledgers[OperationKind.COLLECT_FEES.value].items,
        withdrawals=ctx.ledgers[OperationKind.DECREASE_LIQUIDITY.value].items,
        valuation=value_position(snapshot),
        outstanding_fees=ctx.outstanding_fees_required,
        gas=ctx.gas_required,
        price_a_usd=price_a,
        price_b_usd=price_b,
        now=ctx.now,
    )
    values = compute_metrics(inputs)

    ctx.report = generate_report(
        owner=ctx.owner,
        ledgers=list(ctx.ledgers.values()),
        values=values,
        evaluated_at=ctx.now,
        start_utc=ctx.start_utc,
        end_utc=ctx.end_utc,
    )
    log.info(
        "Metrics computed: pnl_usd=%s roi=%s",
        values["pnl_usd"],
        values["roi"],
    )
