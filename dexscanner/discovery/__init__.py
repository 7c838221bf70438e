"""
Pool discovery: protocol registry, subgraph queries, price normalization
and whitelist filtering.
"""

from .orchestrator import DiscoveryReport, PoolDiscovery, TransportErrorPolicy
from .pool_models import (
    POOL_MODEL_SPECS,
    PoolModelSpec,
    derive_pool_price,
    derive_row_price,
    get_pool_model_spec,
    price_from_reserves,
    price_from_sqrt_price_x96,
)
from .registry import ProtocolRegistry
from .subgraph import ProtocolFetchResult, SubgraphClient
from .whitelist import TokenWhitelist, filter_pools_by_token_whitelist

__all__ = [
    "DiscoveryReport",
    "PoolDiscovery",
    "TransportErrorPolicy",
    "POOL_MODEL_SPECS",
    "PoolModelSpec",
    "derive_pool_price",
    "derive_row_price",
    "get_pool_model_spec",
    "price_from_reserves",
    "price_from_sqrt_price_x96",
    "ProtocolRegistry",
    "ProtocolFetchResult",
    "SubgraphClient",
    "TokenWhitelist",
    "filter_pools_by_token_whitelist",
]
