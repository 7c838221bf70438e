"""
Tests for on-chain event decoding.

Log payloads are built with eth_abi.encode so they match what a node
returns for the real events.
"""

import pytest
from eth_abi import encode
from hexbytes import HexBytes

from dexscanner.errors import DataQualityError
from dexscanner.tracking.liquidity_pools import (
    GET_RESERVES_SELECTOR,
    SLOT0_SELECTOR,
    V2_SWAP_TOPIC,
    V2_SYNC_TOPIC,
    V3_SWAP_TOPIC,
    EthereumLog,
    UniswapV2Pool,
    UniswapV3Pool,
    liquidity_pool_for,
    to_hex,
)
from dexscanner.types import PoolModel

POOL = "0xb4e16d0168e52d35cacd2c6185b44281ec28c9dc"
SENDER = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"
RECIPIENT = "0x1111111254eeb25477b68fb85ed929f73a960582"
Q96 = 2**96


def address_topic(address):
    return HexBytes(b"\x00" * 12 + bytes.fromhex(address[2:]))


def make_log(topics, data, address=POOL):
    return EthereumLog(address=address, topics=list(topics), data=HexBytes(data))


class TestEventSignatures:
    """Topics and selectors match the deployed contracts."""

    def test_topics(self):
        assert to_hex(V3_SWAP_TOPIC) == "0xc42079f94a6350d7e6235f29174924f928cc2ac818eb64fed8004e115fbcca67"
        assert to_hex(V2_SWAP_TOPIC) == "0xd78ad95fa46c994b6551d0da85fc275fe613ce37657fb8d5e3d130840159d822"
        assert to_hex(V2_SYNC_TOPIC) == "0x1c411e9a96e071241c2f21f7726b17ae89e3cab4c78be50e062b03a9fffbbad1"

    def test_selectors(self):
        assert SLOT0_SELECTOR == "0x3850c7bd"
        assert GET_RESERVES_SELECTOR == "0x0902f1ac"

    def test_pool_event_signatures(self):
        assert UniswapV2Pool(POOL, 18, 18).event_signatures == [V2_SWAP_TOPIC, V2_SYNC_TOPIC]
        assert UniswapV3Pool(POOL, 18, 18).event_signatures == [V3_SWAP_TOPIC]


class TestEthereumLog:

    def test_from_rpc_hex_strings(self):
        raw = {
            "address": "0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc",
            "topics": [to_hex(V2_SYNC_TOPIC)],
            "data": "0x" + encode(["uint112", "uint112"], [1, 2]).hex(),
            "blockNumber": "0x10",
            "transactionHash": "0x" + "ab" * 32,
        }
        log = EthereumLog.from_rpc(raw)

        assert log.address == POOL
        assert log.topics == [V2_SYNC_TOPIC]
        assert len(log.data) == 64
        assert log.block_number == 16
        assert log.transaction_hash == "0x" + "ab" * 32

    def test_from_rpc_bytes(self):
        raw = {"address": POOL, "topics": [V3_SWAP_TOPIC], "data": b"\x00" * 32, "blockNumber": 42}
        log = EthereumLog.from_rpc(raw)
        assert log.block_number == 42
        assert log.transaction_hash is None


class TestUniswapV2Pool:
    """Test constant-product event decoding."""

    def test_sync_updates_reserves_and_price(self):
        pool = UniswapV2Pool(POOL, 18, 6)
        data = encode(["uint112", "uint112"], [10**18, 2000 * 10**6])

        swap = pool.parse_swap_event_data(make_log([V2_SYNC_TOPIC], data))

        assert swap.price == pytest.approx(2000.0)
        assert swap.amount0 == 0 and swap.amount1 == 0
        assert pool.reserve0 == 10**18
        assert pool.get_current_price() == pytest.approx(2000.0)

    def test_swap_amounts_are_signed_net_flows(self):
        pool = UniswapV2Pool(POOL, 18, 18)
        pool.parse_swap_event_data(make_log([V2_SYNC_TOPIC], encode(["uint112", "uint112"], [1000, 2000])))

        data = encode(["uint256"] * 4, [100, 0, 0, 195])
        topics = [V2_SWAP_TOPIC, address_topic(SENDER), address_topic(RECIPIENT)]
        swap = pool.parse_swap_event_data(make_log(topics, data))

        assert swap.amount0 == 100
        assert swap.amount1 == -195
        assert swap.sender == SENDER
        assert swap.recipient == RECIPIENT
        assert swap.price == 2.0

    def test_swap_before_sync_has_no_price(self):
        pool = UniswapV2Pool(POOL, 18, 18)
        swap = pool.parse_swap_event_data(make_log([V2_SWAP_TOPIC], encode(["uint256"] * 4, [1, 0, 0, 1])))
        assert swap.price is None

    def test_no_topics(self):
        with pytest.raises(DataQualityError):
            UniswapV2Pool(POOL, 18, 18).parse_swap_event_data(make_log([], b""))

    def test_unknown_event(self):
        with pytest.raises(DataQualityError):
            UniswapV2Pool(POOL, 18, 18).parse_swap_event_data(make_log([V3_SWAP_TOPIC], b"\x00" * 160))

    def test_short_sync_data(self):
        with pytest.raises(DataQualityError):
            UniswapV2Pool(POOL, 18, 18).parse_swap_event_data(make_log([V2_SYNC_TOPIC], b"\x00" * 32))

    def test_initial_state_from_get_reserves(self):
        pool = UniswapV2Pool(POOL, 18, 18)
        pool.apply_initial_state(encode(["uint112", "uint112", "uint32"], [1000, 2000, 1700000000]))
        assert pool.get_current_price() == 2.0

    def test_short_initial_state_ignored(self):
        pool = UniswapV2Pool(POOL, 18, 18)
        pool.apply_initial_state(b"\x01")
        assert pool.get_current_price() is None


class TestUniswapV3Pool:
    """Test concentrated-liquidity event decoding."""

    def swap_data(self, amount0=-5, amount1=10, sqrt_price=Q96, liquidity=1000, tick=0):
        return encode(["int256", "int256", "uint160", "uint128", "int24"], [amount0, amount1, sqrt_price, liquidity, tick])

    def test_swap_updates_price(self):
        pool = UniswapV3Pool(POOL, 18, 18)
        topics = [V3_SWAP_TOPIC, address_topic(SENDER), address_topic(RECIPIENT)]

        swap = pool.parse_swap_event_data(make_log(topics, self.swap_data()))

        assert swap.price == 1.0
        assert swap.amount0 == -5
        assert swap.amount1 == 10
        assert swap.sender == SENDER
        assert swap.recipient == RECIPIENT
        assert swap.extra == {"liquidity": 1000, "tick": 0}

    def test_negative_tick_decoded(self):
        pool = UniswapV3Pool(POOL, 18, 18)
        pool.parse_swap_event_data(make_log([V3_SWAP_TOPIC], self.swap_data(sqrt_price=2 * Q96, tick=-27728)))
        assert pool.tick == -27728
        assert pool.get_current_price() == 4.0

    def test_decimal_adjusted_price(self):
        """sqrtPriceX96 = 2^96 for a 6/18 decimals pool is 1e-12."""
        pool = UniswapV3Pool(POOL, 6, 18)
        swap = pool.parse_swap_event_data(make_log([V3_SWAP_TOPIC], self.swap_data()))
        assert swap.price == pytest.approx(1e-12)

    def test_missing_sender_topics_default_to_zero_address(self):
        pool = UniswapV3Pool(POOL, 18, 18)
        swap = pool.parse_swap_event_data(make_log([V3_SWAP_TOPIC], self.swap_data()))
        assert swap.sender == "0x" + "00" * 20

    def test_wrong_topic(self):
        with pytest.raises(DataQualityError):
            UniswapV3Pool(POOL, 18, 18).parse_swap_event_data(make_log([V2_SYNC_TOPIC], self.swap_data()))

    def test_short_data(self):
        with pytest.raises(DataQualityError):
            UniswapV3Pool(POOL, 18, 18).parse_swap_event_data(make_log([V3_SWAP_TOPIC], b"\x00" * 96))

    def test_initial_state_from_slot0(self):
        pool = UniswapV3Pool(POOL, 18, 18)
        result = encode(
            ["uint160", "int24", "uint16", "uint16", "uint16", "uint8", "bool"],
            [2 * Q96, 13863, 1, 1, 1, 0, True],
        )
        pool.apply_initial_state(result)
        assert pool.get_current_price() == 4.0
        assert pool.tick == 13863

    def test_no_price_before_state(self):
        assert UniswapV3Pool(POOL, 18, 18).get_current_price() is None


class TestLiquidityPoolFor:

    def test_selects_by_pool_model(self, make_pool):
        v2 = liquidity_pool_for(make_pool(POOL, pool_model=PoolModel.CONSTANT_PRODUCT))
        v3 = liquidity_pool_for(make_pool(POOL))

        assert isinstance(v2, UniswapV2Pool)
        assert isinstance(v3, UniswapV3Pool)
        assert v2.token1_decimals == 6
