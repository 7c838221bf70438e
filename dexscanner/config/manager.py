"""
Configuration manager for the DEX pool scanner.

Combines the environment-driven settings with the JSON protocol and token
tables into one object the CLI and the scanner read from.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..discovery.registry import ProtocolRegistry
from ..errors import ConfigurationError
from ..types import DiscoveryPolicy, ProtocolDescriptor
from .base import BaseConfig
from .protocols import DEFAULT_GATEWAY_BASE, load_protocol_registry
from .tokens import load_tokens_file

logger = logging.getLogger(__name__)


@dataclass
class ScannerConfig(BaseConfig):
    """Environment settings for discovery and tracking."""

    RPC_URL: str = field(default_factory=lambda: BaseConfig.get_env("RPC_URL", ""))
    THE_GRAPH_API_KEY: str = field(default_factory=lambda: BaseConfig.get_env("THE_GRAPH_API_KEY", ""))
    GRAPH_GATEWAY_BASE: str = field(
        default_factory=lambda: BaseConfig.get_env("GRAPH_GATEWAY_BASE", "") or DEFAULT_GATEWAY_BASE
    )
    PROTOCOLS_JSON: str = field(default_factory=lambda: BaseConfig.get_env("PROTOCOLS_JSON", "protocols.json"))
    TOKENS_JSON: str = field(default_factory=lambda: BaseConfig.get_env("TOKENS_JSON", "tokens.json"))

    SUBGRAPH_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: BaseConfig.get_env_float("SUBGRAPH_TIMEOUT_SECONDS", 30.0)
    )
    SUBGRAPH_MAX_RETRIES: int = field(default_factory=lambda: BaseConfig.get_env_int("SUBGRAPH_MAX_RETRIES", 0))
    DISCOVERY_CONCURRENT: bool = field(default_factory=lambda: BaseConfig.get_env_bool("DISCOVERY_CONCURRENT", True))
    ABORT_ON_TRANSPORT_ERROR: bool = field(
        default_factory=lambda: BaseConfig.get_env_bool("ABORT_ON_TRANSPORT_ERROR", False)
    )

    def _validate_config(self):
        super()._validate_config()
        if self.SUBGRAPH_TIMEOUT_SECONDS <= 0:
            raise ConfigurationError(f"SUBGRAPH_TIMEOUT_SECONDS must be positive, got {self.SUBGRAPH_TIMEOUT_SECONDS}")
        if self.SUBGRAPH_MAX_RETRIES < 0:
            raise ConfigurationError(f"SUBGRAPH_MAX_RETRIES must be non-negative, got {self.SUBGRAPH_MAX_RETRIES}")

    @property
    def protocols_path(self) -> Path:
        return Path(self.PROTOCOLS_JSON)

    @property
    def tokens_path(self) -> Path:
        return Path(self.TOKENS_JSON)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        # Never expose credentials
        if data.get("THE_GRAPH_API_KEY"):
            data["THE_GRAPH_API_KEY"] = "***"
        return data


class ConfigManager:
    """
    Centralized configuration access.

    Environment settings are read once at construction. The protocol and
    token tables are read from disk on every call so that a long-running
    process picks up edits on its next discovery run.
    """

    def __init__(self, environment: Optional[str] = None, **overrides: Any):
        """
        Initialize the configuration manager.

        Args:
            environment: Override the environment (local, dev, staging, production)
            overrides: ScannerConfig field overrides, e.g. PROTOCOLS_JSON="..."
        """
        try:
            self._scanner_config = ScannerConfig(**overrides)
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration override: {e}")
        if environment:
            self._scanner_config.ENVIRONMENT = environment
            self._scanner_config._validate_config()

        logger.info(f"Configuration initialized for environment: {self.environment}")

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self._scanner_config.ENVIRONMENT

    @property
    def scanner(self) -> ScannerConfig:
        return self._scanner_config

    def load_registry(self) -> Tuple[ProtocolRegistry, DiscoveryPolicy]:
        """Load every protocol from the protocols file."""
        return load_protocol_registry(
            self.scanner.protocols_path,
            api_key=self.scanner.THE_GRAPH_API_KEY,
            gateway_base=self.scanner.GRAPH_GATEWAY_BASE,
        )

    def load_protocols(self) -> Tuple[List[ProtocolDescriptor], DiscoveryPolicy]:
        """Load queryable protocols and the discovery policy."""
        registry, policy = self.load_registry()
        return registry.enabled(), policy

    def load_tokens(self) -> Dict[str, str]:
        """Load the token whitelist (symbol -> address)."""
        return load_tokens_file(self.scanner.tokens_path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        return {"environment": self.environment, "scanner": self.scanner.to_dict()}

    def __repr__(self) -> str:
        """String representation of the configuration manager."""
        return f"ConfigManager(environment={self.environment})"


# Global configuration manager instance
_config_manager = None


def get_config(environment: Optional[str] = None, force_reload: bool = False) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        environment: Override environment
        force_reload: Force reload of configuration

    Returns:
        ConfigManager instance
    """
    global _config_manager

    if _config_manager is None or force_reload:
        _config_manager = ConfigManager(environment=environment)

    return _config_manager


def reload_config(environment: Optional[str] = None) -> ConfigManager:
    """Reload the global configuration manager."""
    return get_config(environment=environment, force_reload=True)
