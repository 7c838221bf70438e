"""
Live price tracking for discovered pools.
"""

from .events import PriceChangeEvent, PriceEventSink
from .liquidity_pools import (
    GET_RESERVES_SELECTOR,
    SLOT0_SELECTOR,
    V2_SWAP_TOPIC,
    V2_SYNC_TOPIC,
    V3_SWAP_TOPIC,
    BaseLiquidityPool,
    EthereumLog,
    SwapEventData,
    UniswapV2Pool,
    UniswapV3Pool,
    liquidity_pool_for,
)
from .scanner import Scanner, build_discovery, discover_from_config

__all__ = [
    "PriceChangeEvent",
    "PriceEventSink",
    "GET_RESERVES_SELECTOR",
    "SLOT0_SELECTOR",
    "V2_SWAP_TOPIC",
    "V2_SYNC_TOPIC",
    "V3_SWAP_TOPIC",
    "BaseLiquidityPool",
    "EthereumLog",
    "SwapEventData",
    "UniswapV2Pool",
    "UniswapV3Pool",
    "liquidity_pool_for",
    "Scanner",
    "build_discovery",
    "discover_from_config",
]
