from __future__ import annotations

from abc import ABC, abstractmethod

from ...domain import GasCost, OutstandingFees
from ...pricing import PriceOracle
from ...settings import AnalyticsSettings
from ..chain.base import BaseChainDataSource


class BasePositionReader(ABC):
    """Abstract base class for readers deriving position inputs from chain data."""

    def __init__(
        self,
        config: AnalyticsSettings,
        source: BaseChainDataSource,
        oracle: PriceOracle,
    ):
        """Initialize the reader.

        Args:
            config: Analytics configuration
            source: Blockchain data source used for account and transaction reads
            oracle: Request-scoped price oracle used for USD valuation
        """
        self.config = config
        self.source = source
        self.oracle = oracle

    @property
    @abstractmethod
    def reader_name(self) -> str:
        """Return the name of this reader."""
        ...


class BaseOutstandingFeesReader(BasePositionReader):
    @abstractmethod
    async def get_outstanding_fees(self, position_id: str) -> OutstandingFees:
        """Uncollected fee balances of ``position_id`` valued at spot."""
        ...


class BaseGasReader(BasePositionReader):
    @abstractmethod
    async def get_gas_cost(
        self, position_id: str, include_history: bool = False
    ) -> GasCost:
        """Network fees paid by transactions touching ``position_id``."""
        ...
