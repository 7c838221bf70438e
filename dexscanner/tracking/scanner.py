"""
Live price scanner.

Runs discovery from config, seeds each pool's state with an eth_call,
subscribes to the pools' event logs over a websocket and publishes a
PriceChangeEvent for every log that moves a price.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from eth_utils import to_checksum_address
from web3 import AsyncWeb3, WebSocketProvider

from ..config.manager import ConfigManager
from ..discovery.orchestrator import PoolDiscovery, TransportErrorPolicy
from ..discovery.pool_models import derive_pool_price
from ..discovery.subgraph import SubgraphClient
from ..discovery.whitelist import TokenWhitelist, filter_pools_by_token_whitelist
from ..errors import ConfigurationError, DataQualityError, ErrorHandler
from ..types import CachedPool, PoolPrice
from .events import PriceChangeEvent, PriceEventSink
from .liquidity_pools import BaseLiquidityPool, EthereumLog, liquidity_pool_for, to_hex

logger = logging.getLogger(__name__)


def build_discovery(config: ConfigManager) -> PoolDiscovery:
    """PoolDiscovery with client settings taken from the environment config."""
    settings = config.scanner
    return PoolDiscovery(
        SubgraphClient(
            timeout=settings.SUBGRAPH_TIMEOUT_SECONDS,
            max_retries=settings.SUBGRAPH_MAX_RETRIES,
        ),
        concurrent=settings.DISCOVERY_CONCURRENT,
        transport_error_policy=(
            TransportErrorPolicy.ABORT if settings.ABORT_ON_TRANSPORT_ERROR else TransportErrorPolicy.SKIP
        ),
    )


async def discover_from_config(
    config: ConfigManager, discovery: Optional[PoolDiscovery] = None
) -> List[CachedPool]:
    """
    Discover pools from the configured protocols and filter them by the
    token whitelist.

    A missing or invalid protocols file is logged and yields no pools.

    Raises:
        TransportError: Only when ABORT_ON_TRANSPORT_ERROR is set
    """
    try:
        protocols, policy = config.load_protocols()
    except ConfigurationError as e:
        ErrorHandler(logger).log_error(e, {"path": config.scanner.PROTOCOLS_JSON})
        return []

    if not protocols:
        logger.warning(
            "No enabled protocols (or THE_GRAPH_API_KEY unset). "
            "Set THE_GRAPH_API_KEY and enable protocols in protocols.json."
        )
        return []

    whitelist = TokenWhitelist.from_symbol_map(config.load_tokens())

    owns_discovery = discovery is None
    if owns_discovery:
        discovery = build_discovery(config)

    try:
        pools = await discovery.discover_pools(protocols, policy)
    finally:
        if owns_discovery:
            await discovery.close()

    return filter_pools_by_token_whitelist(pools, whitelist)


class Scanner:
    """
    Tracks prices of discovered pools from on-chain events.

    Usage:
        sink = PriceEventSink()
        sink.register(print_price)
        scanner = Scanner(rpc_url, sink)
        pools = await scanner.load_pools(get_config())
        await scanner.start(pools)
        ...
        await scanner.stop()
    """

    def __init__(
        self,
        rpc_url: str,
        sink: Optional[PriceEventSink] = None,
        discovery: Optional[PoolDiscovery] = None,
    ):
        """
        Initialize scanner.

        Args:
            rpc_url: Websocket RPC endpoint
            sink: Where price changes are published (a new sink if None)
            discovery: Discovery to use in load_pools (built from config if None)

        Raises:
            ConfigurationError: If rpc_url is empty
        """
        if not rpc_url:
            raise ConfigurationError("RPC_URL must be set")

        self.rpc_url = rpc_url
        self.sink = sink or PriceEventSink()
        self.discovery = discovery
        self.error_handler = ErrorHandler(logger)

        self.pools: Dict[str, CachedPool] = {}
        self.liquidity_pools: Dict[str, BaseLiquidityPool] = {}
        self.current_prices: Dict[str, PoolPrice] = {}

        self._subscription_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self.subscription_error: Optional[Exception] = None

    @property
    def is_running(self) -> bool:
        return self._subscription_task is not None and not self._subscription_task.done()

    async def load_pools(self, config: ConfigManager) -> List[CachedPool]:
        """Discover pools from config and filter them by the token whitelist."""
        return await discover_from_config(config, self.discovery)

    def register_pools(self, pools: Iterable[CachedPool]) -> None:
        """Create trackers for pools; a pool listed twice is tracked once."""
        for pool in pools:
            if pool.address in self.liquidity_pools:
                continue
            self.pools[pool.address] = pool
            self.liquidity_pools[pool.address] = liquidity_pool_for(pool)

    def log_filter(self) -> Dict[str, Any]:
        """eth_subscribe logs filter covering every tracked pool and event."""
        topics = sorted({to_hex(t) for lp in self.liquidity_pools.values() for t in lp.event_signatures})
        return {
            "address": [to_checksum_address(address) for address in self.liquidity_pools],
            "topics": [topics],
        }

    async def start(self, pools: Optional[Iterable[CachedPool]] = None) -> None:
        """Register pools and start the subscription and dispatch loops."""
        if self.is_running:
            logger.warning("Scanner already running")
            return

        self.subscription_error = None

        if pools is not None:
            self.register_pools(pools)

        logger.info(f"Starting scanner for {len(self.liquidity_pools)} pools")
        if not self.liquidity_pools:
            logger.warning("No pools to track")
            return

        self._dispatch_task = asyncio.create_task(self.sink.run())
        self._subscription_task = asyncio.create_task(self._run_subscription())

    async def wait(self) -> None:
        """Wait until the subscription loop ends."""
        if self._subscription_task is not None:
            await asyncio.gather(self._subscription_task, return_exceptions=True)

    async def stop(self) -> None:
        """Cancel the subscription and flush queued events to handlers."""
        if self._subscription_task is not None:
            self._subscription_task.cancel()
            await asyncio.gather(self._subscription_task, return_exceptions=True)
            self._subscription_task = None

        await self.sink.close()
        if self._dispatch_task is not None:
            await self._dispatch_task
            self._dispatch_task = None
        logger.info("Scanner stopped")

    async def _run_subscription(self) -> None:
        try:
            async with AsyncWeb3(WebSocketProvider(self.rpc_url)) as w3:
                await self._apply_initial_states(w3)
                subscription_id = await w3.eth.subscribe("logs", self.log_filter())
                logger.info(f"Subscribed to logs for {len(self.liquidity_pools)} pools ({subscription_id})")

                async for response in w3.socket.process_subscriptions():
                    log = response.get("result") if isinstance(response, Mapping) else None
                    if log:
                        await self.handle_log(log)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.subscription_error = e
            logger.warning(f"Log subscription ended with error: {e!r}")

    async def _apply_initial_states(self, w3: AsyncWeb3) -> None:
        """Seed every tracker with its current on-chain state."""

        async def apply(address: str, lp: BaseLiquidityPool) -> None:
            result = await w3.eth.call({"to": to_checksum_address(address), "data": lp.initial_state_call_data})
            lp.apply_initial_state(bytes(result))

        items = list(self.liquidity_pools.items())
        outcomes = await asyncio.gather(*(apply(a, lp) for a, lp in items), return_exceptions=True)

        failed = 0
        for (address, _), outcome in zip(items, outcomes):
            if isinstance(outcome, Exception):
                failed += 1
                logger.warning(f"Initial state call failed for {address}: {outcome}")
        logger.info(f"Applied initial state to {len(items) - failed}/{len(items)} pools")

    async def handle_log(self, raw_log: Mapping[str, Any]) -> Optional[PriceChangeEvent]:
        """
        Turn one log into a price change event.

        Returns:
            The published event, or None when the log was not for a tracked
            pool or did not yield a price
        """
        log = EthereumLog.from_rpc(raw_log)
        lp = self.liquidity_pools.get(log.address)
        pool = self.pools.get(log.address)
        if lp is None or pool is None:
            logger.debug(f"No tracked pool for log from {log.address}")
            return None

        try:
            swap = lp.parse_swap_event_data(log)
            if swap.price is None:
                logger.debug(f"No price yet for {pool.pair_label} ({log.address})")
                return None
            new_price = derive_pool_price(log.address, Decimal(swap.price), int(time.time()))
        except DataQualityError as e:
            self.error_handler.log_error(e, {"pool": log.address, "block": log.block_number})
            return None

        old_price = self.current_prices.get(log.address)
        self.current_prices[log.address] = new_price

        event = PriceChangeEvent(pool=pool, new_price=new_price, old_price=old_price, swap=swap)
        await self.sink.publish(event)
        return event
