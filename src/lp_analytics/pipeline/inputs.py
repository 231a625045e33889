"""Concurrent collection of every input the metrics need."""

from __future__ import annotations

import asyncio
from typing import Any

from ..adapters.chain.base import BaseChainDataSource
from ..domain import OperationKind, PositionSnapshot
from ..errors import AnalyticsError, PositionNotFoundError, UpstreamUnavailableError
from .context import PipelineContext

LEDGER_KINDS: tuple[OperationKind, ...] = (
    OperationKind.INCREASE_LIQUIDITY,
    OperationKind.COLLECT_FEES,
    OperationKind.DECREASE_LIQUIDITY,
)


async def read_snapshot(
    source: BaseChainDataSource, position_id: str
) -> PositionSnapshot | None:
    """Current position and pool state, or None when either is missing."""
    position = await source.get_position_state(position_id)
    if position is None:
        return None
    pool = await source.get_pool_state(position.pool)
    if pool is None:
        return None
    decimals_a, decimals_b = await asyncio.gather(
        source.get_mint_decimals(pool.token_mint_a),
        source.get_mint_decimals(pool.token_mint_b),
    )
    return PositionSnapshot(
        position=position, pool=pool, decimals_a=decimals_a, decimals_b=decimals_b
    )


def _raise_on_failures(names: list[str], results: list[Any], log: Any) -> None:
    """Raise when any gathered input failed.

    Analytics errors are re-raised unchanged; anything else is reported as an
    upstream failure.
    """
    failures: list[tuple[str, BaseException]] = []
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            log.error("Reading %s failed: %s", name, result)
            failures.append((name, result))

    if not failures:
        return
    first = failures[0][1]
    if isinstance(first, AnalyticsError):
        raise first
    failure_list = ", ".join(name for name, _ in failures)
    raise UpstreamUnavailableError(
        f"Failed to read {len(failures)} input(s): {failure_list}"
    ) from first


async def gather_inputs(ctx: PipelineContext) -> None:
    """Read ledgers, outstanding fees, gas and the position snapshot concurrently.

    Sets them in the context.

    Raises:
        PositionNotFoundError: If the position does not exist or belongs to
            another pool.
    """
    services = ctx.services
    log = ctx.state.logger
    position_id = ctx.position_id

    tasks: list[tuple[str, Any]] = [
        (
            kind.value,
            services.extractor.extract_flows(
                position_id, [kind], ctx.start_utc, ctx.end_utc
            ),
        )
        for kind in LEDGER_KINDS
    ]
    tasks += [
        ("outstanding_fees", services.fees_reader.get_outstanding_fees(position_id)),
        ("gas", services.gas_reader.get_gas_cost(position_id)),
        ("snapshot", read_snapshot(services.source, position_id)),
    ]

    log.info("Reading %d inputs for position %s...", len(tasks), position_id)
    names = [name for name, _ in tasks]
    results = await asyncio.gather(*[coro for _, coro in tasks], return_exceptions=True)
    _raise_on_failures(names, list(results), log)

    outputs = dict(zip(names, results))
    ctx.ledgers = {kind.value: outputs[kind.value] for kind in LEDGER_KINDS}
    ctx.outstanding_fees = outputs["outstanding_fees"]
    ctx.gas = outputs["gas"]
    ctx.snapshot = outputs["snapshot"]

    ledger = ctx.ledgers[OperationKind.INCREASE_LIQUIDITY.value]
    if not ledger.found or ctx.snapshot is None:
        raise PositionNotFoundError(position_id)
    if ledger.pool_address != ctx.pool_id:
        raise PositionNotFoundError(
            position_id,
            f"belongs to pool {ledger.pool_address}, not {ctx.pool_id}",
        )

    log.debug(
        "Inputs ready: %s",
        ", ".join(
            f"{kind}={len(bundle.items)}" for kind, bundle in ctx.ledgers.items()
        ),
    )
