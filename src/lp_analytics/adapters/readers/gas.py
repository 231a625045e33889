"""Network fee totals for transactions touching a position."""

from __future__ import annotations

import logging

from ...constants import SOL_DECIMALS, WSOL_MINT
from ...domain import GasCost, GasEvent
from ...pricing import to_utc_datetime
from ...units import raw_to_decimal
from .base import BaseGasReader

logger = logging.getLogger(__name__)


class TransactionGasReader(BaseGasReader):
    """Sums the lamport fee of every program transaction on the position account.

    Failed transactions are included since their fee is still charged.
    """

    @property
    def reader_name(self) -> str:
        return "transaction_fees"

    async def get_gas_cost(
        self, position_id: str, include_history: bool = False
    ) -> GasCost:
        position = await self.source.get_position_state(position_id)
        if position is None:
            logger.warning("Position %s not found; gas cost is zero", position_id)
            return GasCost.zero()

        transactions = await self.source.get_transactions_for_address(
            position.address,
            self.config.whirlpool_program_id,
            None,
            self.config.transaction_limit,
        )

        seen: set[str] = set()
        events: list[GasEvent] = []
        for tx in transactions:
            signature = tx.get("signature", "")
            if signature in seen:
                continue
            seen.add(signature)
            timestamp = tx.get("timestamp")
            events.append(
                GasEvent(
                    signature=signature,
                    timestamp=to_utc_datetime(timestamp) if timestamp is not None else None,
                    lamports=int(tx.get("fee") or 0),
                )
            )

        lamports = sum(event.lamports for event in events)
        sol = raw_to_decimal(lamports, SOL_DECIMALS)
        sol_price = await self.oracle.get_price_usd(WSOL_MINT)

        logger.debug(
            "Gas for %s: %d transactions, %d lamports", position_id, len(events), lamports
        )
        return GasCost(
            lamports=lamports,
            sol=sol,
            usd=sol * sol_price,
            history=tuple(events) if include_history else (),
        )
