"""
Error taxonomy for pool discovery and tracking.

Each error class marks the level at which it is contained:
configuration and indexer errors at the protocol level, data quality
errors at the pool level, transport errors per the caller's policy.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Base exception for the scanner."""
    pass


class ConfigurationError(ScannerError):
    """Raised when config files or required credentials are missing or invalid."""
    pass


class TransportError(ScannerError):
    """Raised when an indexer or RPC endpoint cannot be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class IndexerError(ScannerError):
    """Raised when a well-formed GraphQL response carries an errors array."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class DataQualityError(ScannerError):
    """Raised when a single pool's numeric fields prevent price derivation."""

    def __init__(self, message: str, pool_address: Optional[str] = None):
        super().__init__(message)
        self.pool_address = pool_address


class ErrorHandler:
    """
    Centralized error classification for discovery operations.

    Decides which errors are worth retrying and how long to wait,
    and logs errors with a level matching their category.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def classify_error(self, error: Exception) -> str:
        """
        Classify an error into a category.

        Args:
            error: Exception to classify

        Returns:
            One of 'configuration', 'transport', 'indexer', 'data_quality', 'unknown'
        """
        if isinstance(error, ConfigurationError):
            return "configuration"
        if isinstance(error, TransportError):
            return "transport"
        if isinstance(error, IndexerError):
            return "indexer"
        if isinstance(error, DataQualityError):
            return "data_quality"
        return "unknown"

    def should_retry(self, error: Exception, attempt: int, max_retries: int) -> bool:
        """
        Determine if an error should trigger a retry.

        Args:
            error: Exception that occurred
            attempt: Current attempt number (0-based)
            max_retries: Maximum number of retries allowed

        Returns:
            True if operation should be retried
        """
        if attempt >= max_retries:
            return False

        # Indexer and config errors are deterministic for a given request
        return self.classify_error(error) == "transport"

    def get_retry_delay(self, attempt: int, base_delay: float = 1.0) -> float:
        """Exponential backoff capped at 60 seconds."""
        return min(base_delay * (2 ** attempt), 60.0)

    def log_error(self, error: Exception, context: Dict[str, Any]):
        """
        Log error with appropriate level and context.

        Args:
            error: Exception to log
            context: Additional context for logging
        """
        error_category = self.classify_error(error)
        details = " ".join(f"{key}={value}" for key, value in context.items())

        if error_category == "data_quality":
            self.logger.warning(f"Data quality error: {error} {details}")
        elif error_category == "configuration":
            self.logger.warning(f"Configuration error: {error} {details}")
        elif error_category in ("indexer", "transport"):
            self.logger.error(f"{error_category.capitalize()} error: {error} {details}")
        else:
            self.logger.error(f"Unexpected error ({type(error).__name__}): {error} {details}")
