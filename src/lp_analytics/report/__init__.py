from __future__ import annotations

from .generator import Metric, MetricsReport, format_decimal, generate_report

__all__ = ["Metric", "MetricsReport", "format_decimal", "generate_report"]
