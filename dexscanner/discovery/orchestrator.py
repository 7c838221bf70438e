"""
Discovery orchestrator.

Fans out one subgraph fetch per enabled protocol and concatenates the
results in protocol order. A failing protocol never affects the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from ..errors import (
    ConfigurationError,
    ErrorHandler,
    IndexerError,
    ScannerError,
    TransportError,
)
from ..types import CachedPool, DiscoveryPolicy, ProtocolDescriptor
from .subgraph import ProtocolFetchResult, SubgraphClient

logger = logging.getLogger(__name__)


class TransportErrorPolicy(Enum):
    """What discovery does when a protocol's endpoint cannot be reached."""

    SKIP = "skip"
    ABORT = "abort"


@dataclass
class DiscoveryReport:
    """Pools from one discovery run plus the per-protocol outcome."""

    pools: List[CachedPool] = field(default_factory=list)
    results: List[ProtocolFetchResult] = field(default_factory=list)

    @property
    def failed_protocols(self) -> List[str]:
        return [r.protocol_id for r in self.results if r.failed]

    @property
    def data_quality_error_count(self) -> int:
        return sum(len(r.data_quality_errors) for r in self.results)


class PoolDiscovery:
    """
    Discover pools across protocols.

    KISS: one request per protocol, all in flight together, results merged
    only after every fetch has finished. No deduplication by pool address.
    """

    def __init__(
        self,
        subgraph_client: Optional[SubgraphClient] = None,
        concurrent: bool = True,
        transport_error_policy: TransportErrorPolicy = TransportErrorPolicy.SKIP,
    ):
        self._owns_client = subgraph_client is None
        self.client = subgraph_client or SubgraphClient()
        self.concurrent = concurrent
        self.transport_error_policy = transport_error_policy
        self.error_handler = ErrorHandler(logger)

    async def __aenter__(self) -> "PoolDiscovery":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.close()

    async def discover_pools(
        self, protocols: Iterable[ProtocolDescriptor], policy: DiscoveryPolicy
    ) -> List[CachedPool]:
        """
        Discover pools from all enabled protocols.

        Args:
            protocols: Protocol descriptors in iteration order
            policy: Liquidity threshold and per-protocol cap

        Returns:
            Pools grouped by protocol in iteration order, each group in
            descending liquidity order
        """
        report = await self.run(protocols, policy)
        return report.pools

    async def run(
        self, protocols: Iterable[ProtocolDescriptor], policy: DiscoveryPolicy
    ) -> DiscoveryReport:
        """
        Discover pools and report the outcome of every queried protocol.

        Raises:
            TransportError: Under TransportErrorPolicy.ABORT, the first
                transport failure in protocol order, raised after all
                fetches have completed
        """
        enabled = [p for p in protocols if p.enabled]
        logger.info(f"Discovering pools from {len(enabled)} protocols")

        if self.concurrent:
            outcomes = await asyncio.gather(
                *(self.client.query_protocol(p, policy) for p in enabled),
                return_exceptions=True,
            )
        else:
            outcomes = []
            for protocol in enabled:
                try:
                    outcomes.append(await self.client.query_protocol(protocol, policy))
                except ScannerError as e:
                    outcomes.append(e)

        report = DiscoveryReport()
        first_transport_error: Optional[TransportError] = None

        for protocol, outcome in zip(enabled, outcomes):
            if isinstance(outcome, ProtocolFetchResult):
                report.results.append(outcome)
                report.pools.extend(outcome.pools)
                logger.info(f"✅ {protocol.name}: {len(outcome.pools)} pools")
                continue

            if not isinstance(outcome, ScannerError):
                # Programming errors and cancellation are not contained
                raise outcome

            self.error_handler.log_error(outcome, {"protocol": protocol.id})
            report.results.append(ProtocolFetchResult(protocol_id=protocol.id, error=outcome))

            if isinstance(outcome, TransportError) and first_transport_error is None:
                first_transport_error = outcome
            elif isinstance(outcome, (ConfigurationError, IndexerError)):
                logger.error(f"❌ {protocol.name}: skipped ({self.error_handler.classify_error(outcome)})")

        if first_transport_error is not None and self.transport_error_policy is TransportErrorPolicy.ABORT:
            raise first_transport_error

        logger.info(f"Discovered {len(report.pools)} pools in total")
        return report
