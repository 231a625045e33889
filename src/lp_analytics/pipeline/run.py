"""High-level pipeline orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import TypeVar

from ..domain import LedgerBundle, OperationKind
from ..errors import MissingParameterError
from ..ledger import resolve_window
from ..report import MetricsReport
from ..state import AppState
from .context import PipelineContext, Services, build_services
from .inputs import gather_inputs
from .report import build_report

T = TypeVar("T")


async def _with_global_timeout(
    state: AppState, run: Callable[[], Awaitable[T]], label: str
) -> T:
    timeout_s = state.settings.global_timeout_seconds
    try:
        if timeout_s is None or timeout_s <= 0:
            return await run()
        async with asyncio.timeout(timeout_s):
            return await run()
    except asyncio.TimeoutError as exc:
        state.logger.error(
            "%s timed out",
            label,
            extra={"timeout_seconds": timeout_s},
        )
        raise asyncio.TimeoutError(
            f"{label} exceeded global timeout {timeout_s}s\n"
            " N.B. This can be changed via `global_timeout_seconds` "
            "or CLI flag `--global-timeout-seconds`."
        ) from exc


async def calculate_analytics(
    state: AppState,
    pool_id: str,
    owner: str,
    position_id: str | None,
    start_utc: str | datetime | None = None,
    end_utc: str | datetime | None = None,
    *,
    services: Services | None = None,
    now: datetime | None = None,
) -> MetricsReport:
    """Compute the metrics report of one position.

    This is a thin orchestrator that sequences the pipeline steps:
    1. Concurrent input collection (ledgers, fees, gas, snapshot)
    2. Spot pricing, metric computation and report assembly

    Args:
        state: Application state containing settings and logger
        pool_id: Whirlpool the position must belong to
        owner: Owner wallet, carried into the report
        position_id: Position mint (or position account)
        start_utc: Inclusive ISO 8601 start of the flow window
        end_utc: Inclusive ISO 8601 end of the flow window
        services: Collaborators to use; built from settings when omitted
        now: Evaluation time; defaults to the current UTC time

    Raises:
        MissingParameterError: If ``position_id`` is empty
        PositionNotFoundError: If the position does not exist in ``pool_id``
        UpstreamUnavailableError: If a data source fails
        asyncio.TimeoutError: If ``global_timeout_seconds`` is exceeded
    """
    if not position_id:
        raise MissingParameterError("positionId")

    log = state.logger
    now = now or datetime.now(timezone.utc)
    start, end = resolve_window(start_utc, end_utc, now)

    log.info(
        "Starting analytics",
        extra={"pool": pool_id, "position": position_id},
    )

    async def _run_pipeline() -> MetricsReport:
        ctx = PipelineContext(
            state=state,
            services=services or build_services(state.settings),
            pool_id=pool_id,
            owner=owner,
            position_id=position_id,
            start_utc=start,
            end_utc=end,
            now=now,
        )
        await gather_inputs(ctx)
        await build_report(ctx)
        return ctx.report_required

    report = await _with_global_timeout(
        state, _run_pipeline, f"Analytics for position {position_id}"
    )
    log.info("Analytics completed", extra={"position": position_id})
    return report


async def extract_ledger(
    state: AppState,
    position_id: str,
    operation_kinds: Iterable[OperationKind | str],
    start_utc: str | datetime | None = None,
    end_utc: str | datetime | None = None,
    *,
    services: Services | None = None,
) -> LedgerBundle:
    """Extract the USD-valued flow ledger of one position under the global timeout."""
    if not position_id:
        raise MissingParameterError("positionId")

    async def _run() -> LedgerBundle:
        active = services or build_services(state.settings)
        return await active.extractor.extract_flows(
            position_id, operation_kinds, start_utc, end_utc
        )

    return await _with_global_timeout(state, _run, f"Ledger for position {position_id}")
