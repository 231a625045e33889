from __future__ import annotations

from .classifier import classify_transaction, classify_transactions
from .extractor import LedgerExtractor, parse_utc, resolve_window

__all__ = [
    "LedgerExtractor",
    "classify_transaction",
    "classify_transactions",
    "parse_utc",
    "resolve_window",
]
