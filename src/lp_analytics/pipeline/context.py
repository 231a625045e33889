from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..adapters.chain import CachingChainSource, get_chain_source_class
from ..adapters.chain.base import BaseChainDataSource
from ..adapters.price_feeds import get_price_feed_class
from ..adapters.readers import PositionFeesReader, TransactionGasReader
from ..adapters.readers.base import BaseGasReader, BaseOutstandingFeesReader
from ..domain import GasCost, LedgerBundle, OutstandingFees, PositionSnapshot
from ..ledger import LedgerExtractor
from ..pricing import PriceOracle
from ..report import MetricsReport
from ..settings import AnalyticsSettings
from ..state import AppState


@dataclass
class Services:
    """Collaborators of one request. The oracle and source caches live as long as this object."""

    source: BaseChainDataSource
    oracle: PriceOracle
    extractor: LedgerExtractor
    fees_reader: BaseOutstandingFeesReader
    gas_reader: BaseGasReader


def build_services(settings: AnalyticsSettings) -> Services:
    """Instantiate the configured data source and price feed for one request.

    Every collaborator shares one caching view of the data source, so the
    position, pool and transaction history are read upstream once.
    """
    source = CachingChainSource(get_chain_source_class(settings.chain_source)(settings))
    feed = get_price_feed_class(settings.price_feed)(settings)
    oracle = PriceOracle(feed, settings.feed_id_table)
    return Services(
        source=source,
        oracle=oracle,
        extractor=LedgerExtractor(
            source,
            oracle,
            program_id=settings.whirlpool_program_id,
            transaction_limit=settings.transaction_limit,
        ),
        fees_reader=PositionFeesReader(settings, source, oracle),
        gas_reader=TransactionGasReader(settings, source, oracle),
    )


@dataclass
class PipelineContext:
    state: AppState
    services: Services
    pool_id: str
    owner: str
    position_id: str
    start_utc: datetime
    end_utc: datetime
    now: datetime
    ledgers: dict[str, LedgerBundle] = field(default_factory=dict)
    snapshot: PositionSnapshot | None = None
    outstanding_fees: OutstandingFees | None = None
    gas: GasCost | None = None
    report: MetricsReport | None = None

    @property
    def snapshot_required(self) -> PositionSnapshot:
        if self.snapshot is None:
            raise RuntimeError(
                "Position snapshot has not been set. Ensure gather_inputs() is called before accessing this property."
            )
        return self.snapshot

    @property
    def outstanding_fees_required(self) -> OutstandingFees:
        if self.outstanding_fees is None:
            raise RuntimeError(
                "Outstanding fees have not been set. Ensure gather_inputs() is called before accessing this property."
            )
        return self.outstanding_fees

    @property
    def gas_required(self) -> GasCost:
        if self.gas is None:
            raise RuntimeError(
                "Gas cost has not been set. Ensure gather_inputs() is called before accessing this property."
            )
        return self.gas

    @property
    def report_required(self) -> MetricsReport:
        if self.report is None:
            raise RuntimeError(
                "Report has not been set. Ensure build_report() is called before accessing this property."
            )
        return self.report
