from __future__ import annotations

from .base import BaseChainDataSource, RawTransaction, TokenTransfer
from .caching import CachingChainSource
from .helius import HeliusChainDataSource

CHAIN_SOURCES: dict[str, type[BaseChainDataSource]] = {
    "helius": HeliusChainDataSource,
}


def get_chain_source_class(source_name: str) -> type[BaseChainDataSource]:
    """Get blockchain data source class by name.

    Raises:
        ValueError: If source_name is not recognized
    """
    normalized = source_name.lower()
    if normalized not in CHAIN_SOURCES:
        raise ValueError(
            f"Unknown chain data source '{source_name}'. "
            f"Available: {', '.join(CHAIN_SOURCES.keys())}"
        )
    return CHAIN_SOURCES[normalized]


__all__ = [
    "BaseChainDataSource",
    "CHAIN_SOURCES",
    "CachingChainSource",
    "HeliusChainDataSource",
    "RawTransaction",
    "TokenTransfer",
    "get_chain_source_class",
]
