"""Rich console formatter for metrics reports and ledgers."""

from __future__ import annotations

from decimal import Decimal

from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from ..constants import TOKEN_SYMBOLS
from ..domain import LedgerBundle
from .generator import MetricsReport, format_decimal

SECTIONS: dict[str, tuple[str, ...]] = {
    "Range": ("price_lower", "price_upper", "price_current"),
    "Prices": ("price_token_a_usd", "price_token_b_usd"),
    "Holdings": (
        "deposited_token_a",
        "deposited_token_b",
        "current_token_a",
        "current_token_b",
        "withdrawn_token_a",
        "withdrawn_token_b",
    ),
    "Value": (
        "deposit_value_usd",
        "position_value_usd",
        "hodl_value_usd",
        "withdrawn_usd",
        "fees_collected_usd",
        "fees_uncollected_usd",
        "fees_total_usd",
        "gas_usd",
    ),
    "Returns": (
        "position_age_days",
        "pnl_usd",
        "pnl_ex_gas_usd",
        "pnl_fee_usd",
        "pnl_fee_ex_gas_usd",
        "roi",
        "roi_ex_gas",
        "roi_fee",
        "roi_fee_ex_gas",
        "total_apr",
        "total_apr_ex_gas",
        "fee_apr",
        "fee_apr_ex_gas",
        "impermanent_loss_usd",
        "impermanent_loss_pct",
    ),
}


def _get_symbol(mint: str) -> str:
    """Get symbol for a mint, or truncated mint if unknown."""
    if not mint:
        return "-"
    return TOKEN_SYMBOLS.get(mint, f"{mint[:4]}...{mint[-4:]}")


def _truncate_address(address: str) -> str:
    if len(address) <= 14:
        return address or "-"
    return f"{address[:6]}...{address[-4:]}"


def _format_value(value: Decimal) -> str:
    if not value.is_finite():
        return "[dim]NaN[/]"
    style = "red" if value < 0 else "green"
    return f"[{style}]{format_decimal(round(value, 6))}[/]"


def format_report_table(report: MetricsReport, console: Console | None = None) -> None:
    """Print the metrics report as a rich dashboard."""
    console = console or Console()

    info_table = Table(show_header=False, box=None, padding=(0, 1))
    info_table.add_column("Key", style="dim")
    info_table.add_column("Value", style="cyan")
    info_table.add_row("Pool", _truncate_address(report.pool_address))
    info_table.add_row("Position", _truncate_address(report.position_id))
    info_table.add_row("Owner", _truncate_address(report.owner))
    info_table.add_row(
        "Pair", f"{_get_symbol(report.token_a.mint)}/{_get_symbol(report.token_b.mint)}"
    )
    info_panel = Panel(info_table, title="[bold]Position[/]", border_style="blue")

    window_table = Table(show_header=False, box=None, padding=(0, 1))
    window_table.add_column("Key", style="dim")
    window_table.add_column("Value", style="green")
    window_table.add_row("Evaluated", report.evaluated_at.isoformat(timespec="seconds"))
    window_table.add_row("Start", report.start_utc.isoformat(timespec="seconds"))
    window_table.add_row("End", report.end_utc.isoformat(timespec="seconds"))
    for kind, count in report.flow_counts.items():
        window_table.add_row(kind.replace("_", " ").title(), str(count))
    window_panel = Panel(window_table, title="[bold]Window[/]", border_style="green")

    metric_table = Table(expand=True, show_lines=False)
    metric_table.add_column("Metric", style="cyan", no_wrap=True)
    metric_table.add_column("Value", justify="right")
    metric_table.add_column("Description", style="dim")
    for section, names in SECTIONS.items():
        metric_table.add_row(f"[bold]{section}[/]", "", "")
        for name in names:
            metric = report.metrics[name]
            metric_table.add_row(f"  {name}", _format_value(metric.value), metric.description)

    outer_panel = Panel(
        Group(
            Columns([info_panel, window_panel], equal=True, expand=True),
            "",
            Panel(metric_table, title="[bold]Metrics[/]", border_style="cyan"),
        ),
        title="[bold white]LP Position Analytics[/]",
        border_style="white",
        padding=(1, 2),
    )
    console.print()
    console.print(outer_panel)
    console.print()


def format_ledger_table(bundle: LedgerBundle, console: Console | None = None) -> None:
    """Print the flow events of a ledger bundle."""
    console = console or Console()
    symbol_a = _get_symbol(bundle.token_a.mint)
    symbol_b = _get_symbol(bundle.token_b.mint)

    table = Table(expand=True)
    table.add_column("Time (UTC)", style="dim", no_wrap=True)
    table.add_column("Operation", style="cyan")
    table.add_column("Signature", style="dim")
    table.add_column(symbol_a, justify="right")
    table.add_column(symbol_b, justify="right")
    table.add_column("USD", justify="right", style="green")

    total_usd = Decimal(0)
    for item in bundle.items:
        total_usd += item.value_usd
        table.add_row(
            item.timestamp.isoformat(timespec="seconds") if item.timestamp else "-",
            item.operation_kind.value,
            _truncate_address(item.signature),
            format_decimal(item.amount_a.human),
            format_decimal(item.amount_b.human),
            format_decimal(round(item.value_usd, 2)),
        )
    table.add_row("[bold]TOTAL[/]", "", "", "", "", f"[bold]{round(total_usd, 2)}[/]")

    opened = bundle.opened_at.isoformat(timespec="seconds") if bundle.opened_at else "-"
    console.print(
        Panel(
            table,
            title=f"[bold]Ledger {_truncate_address(bundle.position_id)}[/] (opened {opened})",
            border_style="cyan",
        )
    )
