"""
Protocol table loading.

protocols.json layout:

    {
      "protocols": {
        "<id>": {"name": ..., "factory": ..., "subgraphId": ..., "enabled": ..., "poolType": ...}
      },
      "discovery": {"minLiquidityUSD": ..., "cacheRefreshMinutes": ..., "maxPoolsPerProtocol": ...}
    }

Protocols keep the order they appear in the file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

from ..discovery.registry import ProtocolRegistry
from ..errors import ConfigurationError
from ..types import DiscoveryPolicy, PoolModel, ProtocolDescriptor

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_BASE = "https://gateway.thegraph.com/api"
API_KEY_ENV = "THE_GRAPH_API_KEY"
GATEWAY_ENV = "GRAPH_GATEWAY_BASE"


def subgraph_url_from_id(subgraph_id: str, api_key: str, gateway_base: str = DEFAULT_GATEWAY_BASE) -> str:
    """
    Build a gateway URL for a subgraph.

    A subgraph id that is already an http(s) URL is returned unchanged.
    Returns an empty string when there is no key to build a gateway URL with.
    """
    subgraph_id = (subgraph_id or "").strip()
    if subgraph_id.startswith(("http://", "https://")):
        return subgraph_id
    if not subgraph_id or not api_key:
        return ""
    return f"{gateway_base.rstrip('/')}/{api_key}/subgraphs/id/{subgraph_id}"


def read_json_file(path: Union[str, Path]) -> Any:
    """
    Read a JSON config file.

    Raises:
        ConfigurationError: If the file is missing or not valid JSON
    """
    path = Path(path)
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}")
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}")


def parse_discovery_policy(section: Mapping[str, Any]) -> DiscoveryPolicy:
    """Build the discovery policy from the 'discovery' section."""
    if not isinstance(section, Mapping):
        raise ConfigurationError("'discovery' section must be an object")
    for key in ("minLiquidityUSD", "maxPoolsPerProtocol"):
        if key not in section:
            raise ConfigurationError(f"'discovery' section is missing '{key}'")

    return DiscoveryPolicy(
        min_liquidity_usd=section["minLiquidityUSD"],
        max_pools_per_protocol=section["maxPoolsPerProtocol"],
        cache_refresh_minutes=section.get("cacheRefreshMinutes"),
    )


def parse_protocols_config(
    data: Mapping[str, Any],
    api_key: Optional[str],
    gateway_base: str = DEFAULT_GATEWAY_BASE,
) -> Tuple[ProtocolRegistry, DiscoveryPolicy]:
    """
    Build the registry and policy from a parsed protocols.json document.

    Raises:
        ConfigurationError: If a required section or field is missing
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("Protocols config must be a JSON object")

    entries = data.get("protocols")
    if not isinstance(entries, Mapping):
        raise ConfigurationError("Protocols config is missing the 'protocols' object")

    policy = parse_discovery_policy(data.get("discovery"))

    registry = ProtocolRegistry()
    for protocol_id, entry in entries.items():
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Protocol '{protocol_id}' must be an object")
        missing = [k for k in ("name", "subgraphId", "enabled", "poolType") if k not in entry]
        if missing:
            raise ConfigurationError(f"Protocol '{protocol_id}' is missing {', '.join(missing)}")

        registry.register(
            ProtocolDescriptor(
                id=protocol_id,
                name=str(entry["name"]),
                subgraph_url=subgraph_url_from_id(str(entry["subgraphId"]), api_key or "", gateway_base),
                pool_model=PoolModel.from_tag(str(entry["poolType"])),
                factory=str(entry.get("factory", "")),
                enabled=bool(entry["enabled"]),
            )
        )

    return registry, policy


def load_protocol_registry(
    path: Union[str, Path],
    api_key: Optional[str] = None,
    gateway_base: Optional[str] = None,
) -> Tuple[ProtocolRegistry, DiscoveryPolicy]:
    """
    Load every protocol from protocols.json, including disabled ones.

    api_key and gateway_base fall back to THE_GRAPH_API_KEY and
    GRAPH_GATEWAY_BASE.
    """
    if api_key is None:
        api_key = os.getenv(API_KEY_ENV, "")
    if gateway_base is None:
        gateway_base = os.getenv(GATEWAY_ENV) or DEFAULT_GATEWAY_BASE

    if not api_key:
        logger.warning(f"{API_KEY_ENV} not set; subgraph URLs will be empty")

    registry, policy = parse_protocols_config(read_json_file(path), api_key, gateway_base)
    logger.info(f"Loaded {len(registry)} protocols from {path} ({len(registry.enabled())} queryable)")
    return registry, policy


def load_protocols_file(
    path: Union[str, Path],
    api_key: Optional[str] = None,
    gateway_base: Optional[str] = None,
) -> Tuple[List[ProtocolDescriptor], DiscoveryPolicy]:
    """
    Load the protocols that can be queried: enabled and with an endpoint.

    Returns:
        (queryable protocols in file order, discovery policy)
    """
    registry, policy = load_protocol_registry(path, api_key, gateway_base)
    return registry.enabled(), policy
