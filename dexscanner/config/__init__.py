"""
Configuration management for the DEX pool scanner.

Example:
    from dexscanner.config import get_config

    config = get_config()

    # Environment settings
    rpc_url = config.scanner.RPC_URL

    # Protocol table and discovery policy
    protocols, policy = config.load_protocols()

    # Token whitelist
    tokens = config.load_tokens()
"""

from .base import BaseConfig
from .manager import ConfigManager, ScannerConfig, get_config, reload_config
from .protocols import (
    DEFAULT_GATEWAY_BASE,
    load_protocol_registry,
    load_protocols_file,
    parse_protocols_config,
    subgraph_url_from_id,
)
from .tokens import load_tokens_file

__all__ = [
    "BaseConfig",
    "ScannerConfig",
    "ConfigManager",
    "get_config",
    "reload_config",
    "DEFAULT_GATEWAY_BASE",
    "load_protocol_registry",
    "load_protocols_file",
    "parse_protocols_config",
    "subgraph_url_from_id",
    "load_tokens_file",
]
