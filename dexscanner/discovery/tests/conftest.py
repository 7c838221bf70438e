"""Test configuration for discovery: fake aiohttp session and indexer rows."""

import json

import pytest

from dexscanner.types import PoolModel, ProtocolDescriptor

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"

V3_URL = "https://indexer.test/subgraphs/v3"
V2_URL = "https://indexer.test/subgraphs/v2"


class FakeResponse:
    """Minimal aiohttp response supporting `async with`."""

    def __init__(self, payload=None, status=200, json_error=None):
        self.payload = payload
        self.status = status
        self.json_error = json_error

    async def json(self, content_type=None):
        if self.json_error is not None:
            raise self.json_error
        return self.payload

    async def text(self):
        return json.dumps(self.payload) if self.payload is not None else ""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Records POSTs and answers from a url -> response table.

    A list value is consumed one response per request; an exception value
    is raised from post().
    """

    def __init__(self, responses):
        self.responses = responses
        self.requests = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.requests.append({"url": url, "json": json})
        response = self.responses[url]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def v3_row():
    """Factory for a `pools` row as returned by a concentrated-liquidity subgraph."""

    def _row(address, tvl="1000000", sqrt_price=str(2**96), token0=WETH, token1=USDC, decimals0="18", decimals1="18"):
        return {
            "id": address,
            "token0": {"id": token0, "symbol": "WETH", "decimals": decimals0},
            "token1": {"id": token1, "symbol": "USDC", "decimals": decimals1},
            "feeTier": "3000",
            "liquidity": "123456789",
            "sqrtPrice": sqrt_price,
            "tick": "0",
            "totalValueLockedUSD": tvl,
            "volumeUSD": "5000.5",
        }

    return _row


@pytest.fixture
def v2_row():
    """Factory for a `pairs` row as returned by a constant-product subgraph."""

    def _row(address, reserve0="1000", reserve1="2000", reserve_usd="500000", decimals0="18", decimals1="18"):
        return {
            "id": address,
            "token0": {"id": WETH, "symbol": "WETH", "decimals": decimals0},
            "token1": {"id": USDC, "symbol": "USDC", "decimals": decimals1},
            "reserve0": reserve0,
            "reserve1": reserve1,
            "reserveUSD": reserve_usd,
            "volumeUSD": "100",
        }

    return _row


@pytest.fixture
def v3_protocol():
    return ProtocolDescriptor(
        id="uniswap_v3",
        name="Uniswap V3",
        subgraph_url=V3_URL,
        pool_model=PoolModel.CONCENTRATED_LIQUIDITY,
    )


@pytest.fixture
def v2_protocol():
    return ProtocolDescriptor(
        id="uniswap_v2",
        name="Uniswap V2",
        subgraph_url=V2_URL,
        pool_model=PoolModel.CONSTANT_PRODUCT,
    )
