"""
Per-model on-chain state for tracked pools.

Each liquidity pool decodes its own event logs, keeps the latest state
(reserves or sqrtPriceX96) and prices itself from that state.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak
from hexbytes import HexBytes

from ..discovery.pool_models import price_from_reserves, price_from_sqrt_price_x96
from ..errors import DataQualityError
from ..types import CachedPool, PoolModel

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "00" * 20


def event_topic(signature: str) -> HexBytes:
    """topic0 of an event signature."""
    return HexBytes(keccak(text=signature))


def function_selector(signature: str) -> str:
    """4-byte selector of a function signature as 0x-hex."""
    return "0x" + keccak(text=signature)[:4].hex()


def to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


V3_SWAP_TOPIC = event_topic("Swap(address,address,int256,int256,uint160,uint128,int24)")
V2_SWAP_TOPIC = event_topic("Swap(address,uint256,uint256,uint256,uint256,address)")
V2_SYNC_TOPIC = event_topic("Sync(uint112,uint112)")

SLOT0_SELECTOR = function_selector("slot0()")
GET_RESERVES_SELECTOR = function_selector("getReserves()")


def _topic_to_address(topics: List[HexBytes], index: int) -> str:
    """Indexed address in topics[index], zero address when absent."""
    if len(topics) <= index or len(topics[index]) < 20:
        return ZERO_ADDRESS
    return to_hex(bytes(topics[index])[-20:])


def _parse_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(str(value), 16) if str(value).startswith("0x") else int(str(value))


@dataclass
class EthereumLog:
    """Event log reduced to the fields decoders need."""

    address: str
    topics: List[HexBytes]
    data: HexBytes
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None

    @classmethod
    def from_rpc(cls, log: Mapping[str, Any]) -> "EthereumLog":
        """Build from an eth_subscribe / eth_getLogs log object (hex strings or bytes)."""
        tx_hash = log.get("transactionHash")
        return cls(
            address=str(log["address"]).lower(),
            topics=[HexBytes(t) for t in log.get("topics") or []],
            data=HexBytes(log.get("data") or b""),
            block_number=_parse_int(log.get("blockNumber")),
            transaction_hash=to_hex(HexBytes(tx_hash)) if tx_hash else None,
        )


@dataclass
class SwapEventData:
    """
    Decoded pool event.

    Amounts are signed from the pool's perspective: positive means the
    token entered the pool. Sync events carry zero amounts.
    """

    amount0: int
    amount1: int
    price: Optional[float]
    sender: str = ZERO_ADDRESS
    recipient: str = ZERO_ADDRESS
    extra: Dict[str, int] = field(default_factory=dict)


class BaseLiquidityPool(ABC):
    """
    Abstract base class for tracked pools.

    Subclasses define which events they consume, how to decode them and
    which contract call yields their initial state.
    """

    name: str = ""

    def __init__(self, address: str, token0_decimals: int, token1_decimals: int):
        self.address = address.lower()
        self.token0_decimals = token0_decimals
        self.token1_decimals = token1_decimals
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    @abstractmethod
    def event_signatures(self) -> List[HexBytes]:
        """topic0 values this pool decodes."""
        pass

    @property
    @abstractmethod
    def initial_state_call_data(self) -> str:
        """Calldata for the eth_call returning the pool's current state."""
        pass

    @abstractmethod
    def parse_swap_event_data(self, log: EthereumLog) -> SwapEventData:
        """
        Decode a log and update internal state.

        Raises:
            DataQualityError: If the log is not one of this pool's events or
                its data cannot be decoded
        """
        pass

    @abstractmethod
    def apply_initial_state(self, result: bytes) -> None:
        """Apply the raw result of the initial state call."""
        pass

    @abstractmethod
    def get_current_price(self) -> Optional[float]:
        """token0 price in token1 units, None until state is known."""
        pass

    def handles(self, log: EthereumLog) -> bool:
        return bool(log.topics) and log.topics[0] in self.event_signatures

    def _decode(self, types: List[str], data: bytes, event: str) -> tuple:
        if len(data) < 32 * len(types):
            raise DataQualityError(f"{self.name} {event} log data too short ({len(data)} bytes)", self.address)
        try:
            return decode(types, bytes(data))
        except DecodingError as e:
            raise DataQualityError(f"Could not decode {self.name} {event} log: {e}", self.address)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(address={self.address})"


class UniswapV2Pool(BaseLiquidityPool):
    """Constant-product pair priced from its reserves."""

    name = "Uniswap V2"

    def __init__(self, address: str, token0_decimals: int, token1_decimals: int):
        super().__init__(address, token0_decimals, token1_decimals)
        self.reserve0 = 0
        self.reserve1 = 0

    @property
    def event_signatures(self) -> List[HexBytes]:
        return [V2_SWAP_TOPIC, V2_SYNC_TOPIC]

    @property
    def initial_state_call_data(self) -> str:
        return GET_RESERVES_SELECTOR

    def parse_swap_event_data(self, log: EthereumLog) -> SwapEventData:
        if not log.topics:
            raise DataQualityError("Log has no topics", self.address)

        topic0 = log.topics[0]
        if topic0 == V2_SYNC_TOPIC:
            self.reserve0, self.reserve1 = self._decode(["uint112", "uint112"], log.data, "Sync")
            return SwapEventData(amount0=0, amount1=0, price=self.get_current_price())

        if topic0 == V2_SWAP_TOPIC:
            # Swap carries no reserves; a Sync in the same transaction precedes it
            amount0_in, amount1_in, amount0_out, amount1_out = self._decode(["uint256"] * 4, log.data, "Swap")
            return SwapEventData(
                amount0=amount0_in - amount0_out,
                amount1=amount1_in - amount1_out,
                price=self.get_current_price(),
                sender=_topic_to_address(log.topics, 1),
                recipient=_topic_to_address(log.topics, 2),
            )

        raise DataQualityError(f"Not a recognized {self.name} event: {to_hex(topic0)}", self.address)

    def apply_initial_state(self, result: bytes) -> None:
        # getReserves() -> (uint112 reserve0, uint112 reserve1, uint32 blockTimestampLast)
        if len(result) < 64:
            self.logger.warning(f"getReserves() result too short for {self.address}: {len(result)} bytes")
            return
        self.reserve0 = int.from_bytes(result[0:32], "big")
        self.reserve1 = int.from_bytes(result[32:64], "big")

    def get_current_price(self) -> Optional[float]:
        if self.reserve0 <= 0:
            return None
        return float(price_from_reserves(self.reserve0, self.reserve1, self.token0_decimals, self.token1_decimals))


class UniswapV3Pool(BaseLiquidityPool):
    """Concentrated-liquidity pool priced from sqrtPriceX96."""

    name = "Uniswap V3"

    def __init__(self, address: str, token0_decimals: int, token1_decimals: int):
        super().__init__(address, token0_decimals, token1_decimals)
        self.sqrt_price_x96 = 0
        self.liquidity = 0
        self.tick: Optional[int] = None

    @property
    def event_signatures(self) -> List[HexBytes]:
        return [V3_SWAP_TOPIC]

    @property
    def initial_state_call_data(self) -> str:
        return SLOT0_SELECTOR

    def parse_swap_event_data(self, log: EthereumLog) -> SwapEventData:
        if not log.topics or log.topics[0] != V3_SWAP_TOPIC:
            raise DataQualityError(f"Not a recognized {self.name} event", self.address)

        amount0, amount1, sqrt_price_x96, liquidity, tick = self._decode(
            ["int256", "int256", "uint160", "uint128", "int24"], log.data, "Swap"
        )
        self.sqrt_price_x96 = sqrt_price_x96
        self.liquidity = liquidity
        self.tick = tick

        return SwapEventData(
            amount0=amount0,
            amount1=amount1,
            price=self.get_current_price(),
            sender=_topic_to_address(log.topics, 1),
            recipient=_topic_to_address(log.topics, 2),
            extra={"liquidity": liquidity, "tick": tick},
        )

    def apply_initial_state(self, result: bytes) -> None:
        # slot0() -> (uint160 sqrtPriceX96, int24 tick, ...)
        if len(result) < 32:
            self.logger.warning(f"slot0() result too short for {self.address}: {len(result)} bytes")
            return
        self.sqrt_price_x96 = int.from_bytes(result[0:32], "big")
        if len(result) >= 64:
            self.tick = decode(["int24"], bytes(result[32:64]))[0]

    def get_current_price(self) -> Optional[float]:
        if self.sqrt_price_x96 <= 0:
            return None
        return float(price_from_sqrt_price_x96(self.sqrt_price_x96, self.token0_decimals, self.token1_decimals))


LIQUIDITY_POOL_CLASSES: Dict[PoolModel, Type[BaseLiquidityPool]] = {
    PoolModel.CONSTANT_PRODUCT: UniswapV2Pool,
    PoolModel.CONCENTRATED_LIQUIDITY: UniswapV3Pool,
}


def liquidity_pool_for(pool: CachedPool) -> BaseLiquidityPool:
    """Create the tracker for a discovered pool based on its pool model."""
    pool_class = LIQUIDITY_POOL_CLASSES[pool.pool_model]
    return pool_class(pool.address, pool.token0.decimals, pool.token1.decimals)
