from __future__ import annotations

from .base import BaseGasReader, BaseOutstandingFeesReader
from .gas import TransactionGasReader
from .outstanding_fees import PositionFeesReader

__all__ = [
    "BaseGasReader",
    "BaseOutstandingFeesReader",
    "PositionFeesReader",
    "TransactionGasReader",
]
