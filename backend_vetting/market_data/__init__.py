"""
Market data layer: providers, normalization and the merging client.

Produces the immutable MarketSnapshot consumed by a check run.
"""

from backend_vetting.market_data.client import MarketDataClient
from backend_vetting.market_data.models import (
    ContractFlags,
    MarketSnapshot,
    PairInfo,
    ProviderData,
)
from backend_vetting.market_data.providers import (
    DexScreenerProvider,
    GoPlusProvider,
    MarketDataProvider,
    RugCheckProvider,
    default_providers,
)

__all__ = [
    "ContractFlags",
    "DexScreenerProvider",
    "GoPlusProvider",
    "MarketDataClient",
    "MarketDataProvider",
    "MarketSnapshot",
    "PairInfo",
    "ProviderData",
    "RugCheckProvider",
    "default_providers",
]
