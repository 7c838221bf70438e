"""
Subgraph client for pool discovery.

Issues one GraphQL request per protocol against its indexer and maps the
returned rows into CachedPool records, deriving a price snapshot for each
pool with the protocol's pool model.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from ..errors import (
    ConfigurationError,
    DataQualityError,
    ErrorHandler,
    IndexerError,
    ScannerError,
    TransportError,
)
from ..types import CachedPool, DiscoveryPolicy, ProtocolDescriptor, TokenInfo
from .pool_models import PoolModelSpec, derive_row_price, get_pool_model_spec

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_TOKEN_DECIMALS = 18


@dataclass
class ProtocolFetchResult:
    """Result of querying one protocol's subgraph."""

    protocol_id: str
    pools: List[CachedPool] = field(default_factory=list)
    error: Optional[ScannerError] = None
    data_quality_errors: List[DataQualityError] = field(default_factory=list)
    skipped_rows: int = 0

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        """Check if fetch failed."""
        return not self.success


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


def _decimal_or_zero(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)
    return parsed if parsed.is_finite() else Decimal(0)


def _token_info(raw: Mapping[str, Any]) -> TokenInfo:
    decimals = _optional_int(raw.get("decimals"))
    return TokenInfo(
        address=str(raw.get("id") or "").lower(),
        symbol=str(raw.get("symbol") or ""),
        decimals=DEFAULT_TOKEN_DECIMALS if decimals is None else decimals,
    )


class SubgraphClient:
    """
    GraphQL client for protocol subgraphs.

    Owns an aiohttp session unless one is injected. Retries are off by
    default; when enabled only transport failures are retried.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = 0,
        retry_delay: float = 1.0,
    ):
        """
        Initialize subgraph client.

        Args:
            session: Shared aiohttp session (created lazily when None)
            timeout: Total request timeout in seconds
            max_retries: Retries for transport failures, 0 disables retrying
            retry_delay: Base delay for exponential backoff
        """
        self._session = session
        self._owns_session = session is None
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.error_handler = ErrorHandler(self.logger)

    async def __aenter__(self) -> "SubgraphClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def fetch_pools_from_protocol(
        self, protocol: ProtocolDescriptor, policy: DiscoveryPolicy
    ) -> List[CachedPool]:
        """
        Fetch pools for one protocol.

        GraphQL-level errors are logged and yield an empty list. Transport
        failures propagate as TransportError.

        Args:
            protocol: Protocol to query
            policy: Liquidity threshold and result cap

        Returns:
            Pools in indexer order (descending liquidity), at most
            policy.max_pools_per_protocol of them
        """
        if not protocol.enabled:
            return []

        try:
            result = await self.query_protocol(protocol, policy)
        except IndexerError as e:
            self.logger.error(f"GraphQL errors from {protocol.name}: {e}")
            return []
        return result.pools

    async def query_protocol(
        self, protocol: ProtocolDescriptor, policy: DiscoveryPolicy
    ) -> ProtocolFetchResult:
        """
        Query one protocol's subgraph.

        Raises:
            ConfigurationError: Protocol is disabled or has no endpoint
            TransportError: The endpoint could not be reached or answered badly
            IndexerError: The response carried GraphQL errors
        """
        if not protocol.enabled:
            raise ConfigurationError(f"Protocol {protocol.id} is disabled")
        if not protocol.subgraph_url:
            raise ConfigurationError(f"Protocol {protocol.id} has no subgraph URL")

        spec = get_pool_model_spec(protocol.pool_model)
        self.logger.info(f"Fetching pools from {protocol.name} subgraph...")

        payload = await self._post_graphql(
            protocol.subgraph_url, spec.query, spec.build_variables(policy)
        )

        errors = payload.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            message = " | ".join(
                str(err.get("message", err)) if isinstance(err, Mapping) else str(err)
                for err in errors
            )
            raise IndexerError(f"{protocol.name}: {message}", errors)

        data = payload.get("data")
        rows = (data.get(spec.collection) or []) if isinstance(data, Mapping) else []
        if not isinstance(rows, list):
            raise IndexerError(
                f"{protocol.name}: expected a list under '{spec.collection}', got {type(rows).__name__}"
            )

        result = ProtocolFetchResult(protocol_id=protocol.id)
        observed_at = datetime.now(timezone.utc)
        for row in rows[: policy.max_pools_per_protocol]:
            pool = self._map_pool(row, protocol, spec, observed_at, result)
            if pool is not None:
                result.pools.append(pool)

        self.logger.info(
            f"Fetched {len(result.pools)} pools from {protocol.name} "
            f"({len(result.data_quality_errors)} data quality issues)"
        )
        return result

    def _map_pool(
        self,
        row: Any,
        protocol: ProtocolDescriptor,
        spec: PoolModelSpec,
        observed_at: datetime,
        result: ProtocolFetchResult,
    ) -> Optional[CachedPool]:
        """Map one indexer row, recording pool-level problems on the result."""
        if not isinstance(row, Mapping):
            row = {}
        address = str(row.get("id") or "").lower()
        token0_raw = row.get("token0")
        token1_raw = row.get("token1")

        if not address or not isinstance(token0_raw, Mapping) or not isinstance(token1_raw, Mapping):
            error = DataQualityError("Malformed pool row: missing id or token fields", address or None)
            self.error_handler.log_error(error, {"protocol": protocol.id})
            result.data_quality_errors.append(error)
            result.skipped_rows += 1
            return None

        token0 = _token_info(token0_raw)
        token1 = _token_info(token1_raw)

        price = None
        try:
            price = derive_row_price(
                spec.model, row, token0.decimals, token1.decimals, int(observed_at.timestamp())
            )
        except DataQualityError as e:
            if e.pool_address is None:
                e.pool_address = address
            self.error_handler.log_error(e, {"protocol": protocol.id, "pool": address})
            result.data_quality_errors.append(e)

        return CachedPool(
            address=address,
            protocol=protocol.id,
            token0=token0,
            token1=token1,
            fee=_optional_int(row.get(spec.fee_field)) if spec.fee_field else None,
            liquidity_usd=_decimal_or_zero(row.get(spec.liquidity_field)),
            volume_24h_usd=_decimal_or_zero(row.get("volumeUSD")),
            last_seen=observed_at,
            pool_model=spec.model,
            price=price,
        )

    async def _post_graphql(self, url: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """POST a GraphQL request, retrying transport failures when configured."""
        attempt = 0
        while True:
            try:
                return await self._post_once(url, query, variables)
            except TransportError as e:
                if not self.error_handler.should_retry(e, attempt, self.max_retries):
                    raise
                delay = self.error_handler.get_retry_delay(attempt, self.retry_delay)
                self.logger.warning(
                    f"Subgraph request failed: {e}. Retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _post_once(self, url: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        session = self._get_session()
        try:
            async with session.post(
                url,
                json={"query": query, "variables": variables},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise TransportError(
                        f"HTTP {response.status} from subgraph: {body[:200]}",
                        status=response.status,
                    )
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Subgraph request failed: {e!r}") from e
        except ValueError as e:
            raise TransportError(f"Malformed subgraph response: {e}") from e

        if not isinstance(payload, dict):
            raise TransportError("Malformed subgraph response: expected a JSON object")
        return payload
