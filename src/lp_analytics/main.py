"""CLI entrypoint for lp-analytics."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Coroutine
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from .domain import ALL_OPERATION_KINDS, OperationKind
from .errors import PositionNotFoundError, UpstreamUnavailableError
from .logger import setup_logging
from .settings import AnalyticsSettings
from .state import AppState

EXIT_UPSTREAM_UNAVAILABLE = 3
EXIT_NOT_FOUND = 4

T = TypeVar("T")

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Performance analytics for Orca Whirlpool liquidity positions.",
)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("lp_analytics")


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise RuntimeError("Application state is not initialized")
    return state


def _parse_operations(value: str) -> list[OperationKind]:
    try:
        return [OperationKind.parse(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--operations") from None


def _run_boundary(coro: Coroutine[Any, Any, T]) -> T:
    """Run a pipeline coroutine and map its failures to exit codes."""
    try:
        return asyncio.run(coro)
    except PositionNotFoundError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_NOT_FOUND) from None
    except (UpstreamUnavailableError, asyncio.TimeoutError) as e:
        typer.secho(f"{e} (retryable)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=EXIT_UPSTREAM_UNAVAILABLE) from None
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [lp_analytics] table).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    global_timeout_seconds: Annotated[
        float | None,
        typer.Option(
            "--global-timeout-seconds",
            help="Abort a request after this many seconds (0 disables the deadline).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration and logging shared by every command."""
    if config_path:
        os.environ["LP_ANALYTICS_CONFIG"] = str(config_path)

    init_kwargs: dict[str, str | float] = {}
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()
    if global_timeout_seconds is not None:
        init_kwargs["global_timeout_seconds"] = global_timeout_seconds

    settings = AnalyticsSettings(**init_kwargs)

    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def analytics(
    ctx: typer.Context,
    pool_id: Annotated[str, typer.Argument(help="Whirlpool address.")],
    owner: Annotated[str, typer.Argument(help="Owner wallet address.")],
    position: Annotated[
        str | None,
        typer.Option("--position", "-p", help="Position mint address (required)."),
    ] = None,
    start: Annotated[
        str | None, typer.Option("--start", help="Inclusive ISO 8601 window start (UTC).")
    ] = None,
    end: Annotated[
        str | None, typer.Option("--end", help="Inclusive ISO 8601 window end (UTC).")
    ] = None,
    output: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format.")
    ] = OutputFormat.TABLE,
):
    """Compute PnL, ROI, APR and impermanent loss for one position."""
    state = _state(ctx)
    if not position:
        raise typer.BadParameter(
            "a position id is required", param_hint=["--position", "-p"]
        )

    from .pipeline import calculate_analytics

    report = _run_boundary(
        calculate_analytics(state, pool_id, owner, position, start, end)
    )

    if output is OutputFormat.JSON:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        from .report.formatter import format_report_table

        format_report_table(report)


@app.command()
def flows(
    ctx: typer.Context,
    position_id: Annotated[str, typer.Argument(help="Position mint address.")],
    operations: Annotated[
        str,
        typer.Option(
            "--operations",
            "-o",
            help="Comma separated operation kinds.",
        ),
    ] = ",".join(kind.value for kind in ALL_OPERATION_KINDS),
    start: Annotated[
        str | None, typer.Option("--start", help="Inclusive ISO 8601 window start (UTC).")
    ] = None,
    end: Annotated[
        str | None, typer.Option("--end", help="Inclusive ISO 8601 window end (UTC).")
    ] = None,
    output: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format.")
    ] = OutputFormat.TABLE,
):
    """List the classified, USD-valued flows of one position."""
    state = _state(ctx)
    kinds = _parse_operations(operations)

    from .pipeline import extract_ledger

    bundle = _run_boundary(extract_ledger(state, position_id, kinds, start, end))
    if not bundle.found:
        typer.secho(f"Position not found: {position_id}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_NOT_FOUND)

    if output is OutputFormat.JSON:
        typer.echo(json.dumps(bundle.to_dict(), indent=2))
    else:
        from .report.formatter import format_ledger_table

        format_ledger_table(bundle)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
