from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..domain import LedgerBundle, OperationKind, TokenInfo
from ..processors.metrics import METRIC_DESCRIPTIONS


def format_decimal(value: Decimal) -> str:
    """Plain string of a metric value; non-finite values become ``"NaN"``."""
    if not value.is_finite():
        return "NaN"
    return format(value, "f")


@dataclass(frozen=True)
class Metric:
    value: Decimal
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"value": format_decimal(self.value), "description": self.description}


@dataclass(frozen=True)
class MetricsReport:
    """Metrics of one position, evaluated at ``evaluated_at``."""

    pool_address: str
    owner: str
    position_id: str
    position_address: str
    token_a: TokenInfo
    token_b: TokenInfo
    evaluated_at: datetime
    start_utc: datetime
    end_utc: datetime
    metrics: dict[str, Metric]
    flow_counts: dict[str, int] = field(default_factory=dict)

    def value(self, name: str) -> Decimal:
        return self.metrics[name].value

    def to_dict(self) -> dict[str, object]:
        """Convert report to dictionary format."""
        return {
            "pool": self.pool_address,
            "owner": self.owner,
            "position_id": self.position_id,
            "position": self.position_address,
            "token_a": self.token_a.to_dict(),
            "token_b": self.token_b.to_dict(),
            "evaluated_at": self.evaluated_at.isoformat(),
            "window": {
                "start_utc": self.start_utc.isoformat(),
                "end_utc": self.end_utc.isoformat(),
            },
            "flow_counts": dict(self.flow_counts),
            "metrics": {name: metric.to_dict() for name, metric in self.metrics.items()},
        }


def generate_report(
    owner: str,
    ledgers: list[LedgerBundle],
    values: dict[str, Decimal],
    evaluated_at: datetime,
    start_utc: datetime,
    end_utc: datetime,
) -> MetricsReport:
    """Generate a metrics report from computed values.

    Args:
        owner: Owner wallet the report was requested for
        ledgers: Ledger bundles the metrics were computed from; all describe
            the same position, the first supplies the metadata
        values: Metric name -> value, as returned by ``compute_metrics``
        evaluated_at: Evaluation time used for spot prices and position age
        start_utc: Inclusive start of the flow window
        end_utc: Inclusive end of the flow window

    Returns:
        Complete metrics report ready for serialization
    """
    ledger = ledgers[0]
    flow_counts = {
        kind.value: sum(len(bundle.of_kind(kind)) for bundle in ledgers)
        for kind in OperationKind
        if kind is not OperationKind.OPEN_POSITION
    }
    return MetricsReport(
        pool_address=ledger.pool_address,
        owner=owner,
        position_id=ledger.position_id,
        position_address=ledger.position_address,
        token_a=ledger.token_a,
        token_b=ledger.token_b,
        evaluated_at=evaluated_at,
        start_utc=start_utc,
        end_utc=end_utc,
        metrics={
            name: Metric(value=values[name], description=description)
            for name, description in METRIC_DESCRIPTIONS.items()
        },
        flow_counts=flow_counts,
    )
