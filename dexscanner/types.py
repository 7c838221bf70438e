"""
Core types for pool discovery and tracking.

Domain models shared by config loading, discovery and live tracking.
All records are frozen: discovery output is never mutated once produced.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class PoolModel(str, Enum):
    """Pricing model of a liquidity venue."""

    CONSTANT_PRODUCT = "UniswapV2"
    CONCENTRATED_LIQUIDITY = "UniswapV3"

    @classmethod
    def from_tag(cls, tag: str) -> "PoolModel":
        """
        Resolve a config pool-type tag.

        Unknown tags fall back to concentrated liquidity, matching how
        protocol tables have always been read.
        """
        normalized = (tag or "").strip().lower()
        if normalized in ("uniswapv2", "constantproduct", "constant_product", "v2"):
            return cls.CONSTANT_PRODUCT
        if normalized not in ("uniswapv3", "concentratedliquidity", "concentrated_liquidity", "v3"):
            logger.warning(f"Unknown pool type '{tag}', treating as {cls.CONCENTRATED_LIQUIDITY.value}")
        return cls.CONCENTRATED_LIQUIDITY


@dataclass(frozen=True)
class ProtocolDescriptor:
    """
    Protocol entry used to drive discovery.

    Attributes:
        id: Protocol identifier (key in the protocol table)
        name: Display name
        factory: Factory contract address (informational only)
        subgraph_url: Resolved indexer endpoint, empty when it could not be built
        pool_model: Pricing model of the protocol's pools
        enabled: Whether the protocol takes part in discovery
    """

    id: str
    name: str
    subgraph_url: str
    pool_model: PoolModel
    factory: str = ""
    enabled: bool = True

    @property
    def is_queryable(self) -> bool:
        """Enabled and has an endpoint."""
        return self.enabled and bool(self.subgraph_url)


@dataclass(frozen=True)
class DiscoveryPolicy:
    """
    Limits applied to every protocol in one discovery run.

    Attributes:
        min_liquidity_usd: Minimum pool liquidity in USD
        max_pools_per_protocol: Maximum number of pools kept per protocol
        cache_refresh_minutes: Accepted from config, has no effect
    """

    min_liquidity_usd: Decimal
    max_pools_per_protocol: int
    cache_refresh_minutes: Optional[int] = None

    def __post_init__(self):
        try:
            min_liquidity = Decimal(str(self.min_liquidity_usd))
        except InvalidOperation:
            raise ConfigurationError(f"Invalid minimum liquidity: {self.min_liquidity_usd!r}")
        if not min_liquidity.is_finite() or min_liquidity < 0:
            raise ConfigurationError(f"Minimum liquidity must be non-negative, got {self.min_liquidity_usd}")
        if isinstance(self.max_pools_per_protocol, bool) or not isinstance(self.max_pools_per_protocol, int):
            raise ConfigurationError(f"Max pools per protocol must be an integer, got {self.max_pools_per_protocol!r}")
        if self.max_pools_per_protocol <= 0:
            raise ConfigurationError(f"Max pools per protocol must be positive, got {self.max_pools_per_protocol}")
        object.__setattr__(self, "min_liquidity_usd", min_liquidity)


@dataclass(frozen=True)
class TokenInfo:
    """Token as reported by an indexer."""

    address: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class PoolPrice:
    """
    Price snapshot for a pool.

    Attributes:
        pool_address: Pool contract address
        token0_price: Price of token0 expressed in token1 units
        token1_price: Price of token1 expressed in token0 units
        timestamp: Unix timestamp (seconds) of the observation
    """

    pool_address: str
    token0_price: float
    token1_price: float
    timestamp: int


@dataclass(frozen=True)
class CachedPool:
    """
    Discovery result record.

    Not cached anywhere: a fresh record is built on every discovery call.
    Token order is the order the indexer returned.

    Attributes:
        address: Pool contract address (lower-case)
        protocol: Identifier of the protocol the pool was discovered under
        token0: First token of the pair
        token1: Second token of the pair
        fee: Fee tier (concentrated liquidity only)
        liquidity_usd: Indexer-computed liquidity in USD
        volume_24h_usd: Volume in USD, zero when unknown
        last_seen: When the record was produced
        pool_model: Pricing model used for price derivation
        price: Price snapshot derived at discovery, None if underivable
    """

    address: str
    protocol: str
    token0: TokenInfo
    token1: TokenInfo
    fee: Optional[int]
    liquidity_usd: Decimal
    volume_24h_usd: Decimal
    last_seen: datetime
    pool_model: PoolModel = PoolModel.CONCENTRATED_LIQUIDITY
    price: Optional[PoolPrice] = None

    @property
    def pair_label(self) -> str:
        """Human readable pair, e.g. WETH/USDC."""
        return f"{self.token0.symbol}/{self.token1.symbol}"
