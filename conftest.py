"""Shared fixtures for discovery and tracking tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from dexscanner.types import CachedPool, DiscoveryPolicy, PoolModel, PoolPrice, TokenInfo

WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"
PEPE = "0x6982508145454ce325ddbe47a25d4ec3d2311933"

TOKEN_SYMBOLS = {WETH: "WETH", USDC: "USDC", DAI: "DAI", PEPE: "PEPE"}
TOKEN_DECIMALS = {WETH: 18, USDC: 6, DAI: 18, PEPE: 18}


@pytest.fixture
def tokens():
    """Well-known token addresses (lower-case)."""
    return {"WETH": WETH, "USDC": USDC, "DAI": DAI, "PEPE": PEPE}


@pytest.fixture
def make_pool():
    """Factory for CachedPool records."""

    def _make_pool(
        address: str,
        token0: str = WETH,
        token1: str = USDC,
        protocol: str = "uniswap_v3",
        liquidity_usd: str = "1000000",
        pool_model: PoolModel = PoolModel.CONCENTRATED_LIQUIDITY,
        price: PoolPrice = None,
    ) -> CachedPool:
        return CachedPool(
            address=address.lower(),
            protocol=protocol,
            token0=TokenInfo(token0, TOKEN_SYMBOLS.get(token0, "TKN0"), TOKEN_DECIMALS.get(token0, 18)),
            token1=TokenInfo(token1, TOKEN_SYMBOLS.get(token1, "TKN1"), TOKEN_DECIMALS.get(token1, 18)),
            fee=3000 if pool_model == PoolModel.CONCENTRATED_LIQUIDITY else None,
            liquidity_usd=Decimal(liquidity_usd),
            volume_24h_usd=Decimal(0),
            last_seen=datetime(2024, 1, 1, tzinfo=timezone.utc),
            pool_model=pool_model,
            price=price,
        )

    return _make_pool


@pytest.fixture
def policy():
    """Discovery policy used across tests: min $10k, at most 5 pools."""
    return DiscoveryPolicy(min_liquidity_usd=Decimal("10000"), max_pools_per_protocol=5)
