"""
DEX pool scanner.

Discovers liquidity pools from protocol subgraphs, normalizes them into
CachedPool records with a price snapshot, filters them by a token
whitelist and tracks their prices from on-chain events.

Example:
    from dexscanner import PoolDiscovery, load_protocols_file

    protocols, policy = load_protocols_file("protocols.json")
    async with PoolDiscovery() as discovery:
        pools = await discovery.discover_pools(protocols, policy)
"""

from .config import get_config, load_protocols_file, load_tokens_file
from .discovery import (
    PoolDiscovery,
    ProtocolRegistry,
    SubgraphClient,
    TokenWhitelist,
    TransportErrorPolicy,
    filter_pools_by_token_whitelist,
)
from .errors import (
    ConfigurationError,
    DataQualityError,
    IndexerError,
    ScannerError,
    TransportError,
)
from .tracking import PriceChangeEvent, PriceEventSink, Scanner
from .types import (
    CachedPool,
    DiscoveryPolicy,
    PoolModel,
    PoolPrice,
    ProtocolDescriptor,
    TokenInfo,
)

__version__ = "0.1.0"

__all__ = [
    "get_config",
    "load_protocols_file",
    "load_tokens_file",
    "PoolDiscovery",
    "ProtocolRegistry",
    "SubgraphClient",
    "TokenWhitelist",
    "TransportErrorPolicy",
    "filter_pools_by_token_whitelist",
    "ConfigurationError",
    "DataQualityError",
    "IndexerError",
    "ScannerError",
    "TransportError",
    "PriceChangeEvent",
    "PriceEventSink",
    "Scanner",
    "CachedPool",
    "DiscoveryPolicy",
    "PoolModel",
    "PoolPrice",
    "ProtocolDescriptor",
    "TokenInfo",
]
