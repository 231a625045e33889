from __future__ import annotations

from .context import PipelineContext, Services, build_services
from .run import calculate_analytics, extract_ledger

__all__ = [
    "PipelineContext",
    "Services",
    "build_services",
    "calculate_analytics",
    "extract_ledger",
]
