"""
Price change events and the sink consumers subscribe to.

The scanner publishes immutable PriceChangeEvent records into a queue;
registered handlers are invoked from a single dispatch loop, so handlers
never see scanner state directly.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

from ..types import CachedPool, PoolPrice
from .liquidity_pools import SwapEventData

logger = logging.getLogger(__name__)

PriceHandler = Callable[["PriceChangeEvent"], Union[None, Awaitable[None]]]

_STOP = object()


@dataclass(frozen=True)
class PriceChangeEvent:
    """
    A pool's price after an on-chain event.

    Attributes:
        pool: Discovery record of the pool
        new_price: Price after the event
        old_price: Previous price seen by the scanner, None for the first event
        swap: Decoded event the price came from
    """

    pool: CachedPool
    new_price: PoolPrice
    old_price: Optional[PoolPrice] = None
    swap: Optional[SwapEventData] = None

    @property
    def change_pct(self) -> Optional[float]:
        """Percent change of the token0 price, None without a previous price."""
        if self.old_price is None or self.old_price.token0_price == 0:
            return None
        return (self.new_price.token0_price - self.old_price.token0_price) / self.old_price.token0_price * 100.0


class PriceEventSink:
    """
    Queue-backed fan-out of price change events.

    publish() may be called from any coroutine. Handlers run in the order
    they were registered; a failing handler is logged and does not stop
    delivery to the others.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=maxsize)
        self._handlers: List[PriceHandler] = []
        self._closed = False
        self.dropped = 0

    def register(self, handler: PriceHandler) -> Callable[[], None]:
        """
        Register a sync or async handler.

        Returns:
            Callable that unregisters the handler
        """
        self._handlers.append(handler)

        def unregister() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unregister

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def publish(self, event: PriceChangeEvent) -> None:
        """Queue an event, waiting for room when the queue is bounded."""
        if self._closed:
            logger.debug(f"Sink closed, dropping event for {event.pool.address}")
            return
        await self._queue.put(event)

    def publish_nowait(self, event: PriceChangeEvent) -> bool:
        """Queue an event without waiting; returns False if it was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Price event queue full, dropped event for {event.pool.address}")
            return False
        return True

    async def dispatch(self, event: PriceChangeEvent) -> None:
        """Deliver one event to every registered handler."""
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Price handler {handler!r} failed for {event.pool.address}")

    async def drain(self) -> int:
        """Dispatch everything currently queued; returns the number of events."""
        count = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return count
            self._queue.task_done()
            if item is _STOP:
                continue
            await self.dispatch(item)
            count += 1

    async def run(self) -> None:
        """Dispatch loop; returns after close() once the queue is empty."""
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                await self.dispatch(item)
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """Stop accepting events and let run() finish what is queued."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_STOP)
