from __future__ import annotations

from .fee_math import fees_owed_now
from .liquidity_math import PositionValuation, value_position
from .metrics import METRIC_DESCRIPTIONS, MetricInputs, compute_metrics

__all__ = [
    "METRIC_DESCRIPTIONS",
    "MetricInputs",
    "PositionValuation",
    "compute_metrics",
    "fees_owed_now",
    "value_position",
]
