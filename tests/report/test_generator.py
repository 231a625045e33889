import io
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from rich.console import Console

from conftest import OWNER, POOL, POSITION_ACCOUNT, POSITION_MINT, VAULT_A, VAULT_B
from lp_analytics.constants import USDC_MINT, WSOL_MINT
from lp_analytics.domain import FlowEvent, LedgerBundle, OperationKind, TokenAmount, TokenInfo
from lp_analytics.processors.metrics import METRIC_DESCRIPTIONS, UNDEFINED
from lp_analytics.report import format_decimal, generate_report
from lp_analytics.report.formatter import format_ledger_table, format_report_table

EVALUATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)
START = datetime(1970, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 2, tzinfo=timezone.utc)

TOKEN_A = TokenInfo(mint=WSOL_MINT, decimals=9, vault=VAULT_A)
TOKEN_B = TokenInfo(mint=USDC_MINT, decimals=6, vault=VAULT_B)


def event(kind: OperationKind, signature: str) -> FlowEvent:
    return FlowEvent(
        signature=signature,
        timestamp=datetime(2023, 11, 14, tzinfo=timezone.utc),
        operation_kind=kind,
        position_id=POSITION_MINT,
        counterparty=OWNER,
        amount_a=TokenAmount(1_000_000_000, 9),
        amount_b=TokenAmount(100_000_000, 6),
        amount_a_usd=Decimal(150),
        amount_b_usd=Decimal(100),
    )


def bundle(*items: FlowEvent) -> LedgerBundle:
    return LedgerBundle(
        pool_address=POOL,
        position_address=POSITION_ACCOUNT,
        position_id=POSITION_MINT,
        token_a=TOKEN_A,
        token_b=TOKEN_B,
        items=items,
    )


@pytest.fixture
def values():
    result = {name: Decimal(1) for name in METRIC_DESCRIPTIONS}
    result["roi"] = UNDEFINED
    result["pnl_usd"] = Decimal("-12.50")
    return result


@pytest.fixture
def report(values):
    ledgers = [
        bundle(
            event(OperationKind.INCREASE_LIQUIDITY, "dep1"),
            event(OperationKind.INCREASE_LIQUIDITY, "dep2"),
        ),
        bundle(event(OperationKind.COLLECT_FEES, "fee1")),
        bundle(),
    ]
    return generate_report(OWNER, ledgers, values, EVALUATED_AT, START, END)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("1.50"), "1.50"),
        (Decimal("1E-9"), "0.000000001"),
        (Decimal("NaN"), "NaN"),
        (Decimal("Infinity"), "NaN"),
    ],
)
def test_format_decimal(value, expected):
    assert format_decimal(value) == expected


def test_report_metadata_comes_from_the_ledger(report):
    assert report.pool_address == POOL
    assert report.position_address == POSITION_ACCOUNT
    assert report.position_id == POSITION_MINT
    assert report.owner == OWNER
    assert report.token_a == TOKEN_A


def test_report_keeps_metric_order_and_descriptions(report):
    assert list(report.metrics) == list(METRIC_DESCRIPTIONS)
    assert report.metrics["gas_usd"].description == METRIC_DESCRIPTIONS["gas_usd"]


def test_flow_counts_cover_every_flow_kind(report):
    assert report.flow_counts == {
        "INCREASE_LIQUIDITY": 2,
        "DECREASE_LIQUIDITY": 0,
        "COLLECT_FEES": 1,
    }


def test_to_dict_serializes_values_as_strings(report):
    result = report.to_dict()

    assert result["pool"] == POOL
    assert result["evaluated_at"] == "2024-01-01T00:00:00+00:00"
    assert result["window"] == {
        "start_utc": "1970-01-01T00:00:00+00:00",
        "end_utc": "2024-01-02T00:00:00+00:00",
    }
    assert result["metrics"]["roi"]["value"] == "NaN"
    assert result["metrics"]["pnl_usd"]["value"] == "-12.50"
    assert result["token_b"] == {"mint": USDC_MINT, "decimals": 6, "vault": VAULT_B}


def test_missing_metric_value_is_an_error(values):
    del values["gas_usd"]

    with pytest.raises(KeyError):
        generate_report(OWNER, [bundle()], values, EVALUATED_AT, START, END)


def test_report_table_renders(report):
    buffer = io.StringIO()
    format_report_table(report, Console(file=buffer, width=160))

    output = buffer.getvalue()
    assert "LP Position Analytics" in output
    assert "SOL/USDC" in output
    assert "pnl_usd" in output
    assert "NaN" in output


def test_ledger_table_renders_totals():
    buffer = io.StringIO()
    ledger = bundle(
        event(OperationKind.INCREASE_LIQUIDITY, "dep1"),
        event(OperationKind.COLLECT_FEES, "fee1"),
    )

    format_ledger_table(ledger, Console(file=buffer, width=200))

    output = buffer.getvalue()
    assert "TOTAL" in output
    assert "500.00" in output
    assert "COLLECT_FEES" in output
