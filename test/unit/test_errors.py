"""
Tests for the error taxonomy and ErrorHandler.
"""

import logging

import pytest

from dexscanner.errors import (
    ConfigurationError,
    DataQualityError,
    ErrorHandler,
    IndexerError,
    ScannerError,
    TransportError,
)


@pytest.fixture
def handler():
    return ErrorHandler(logging.getLogger("test.errors"))


class TestErrorTypes:

    @pytest.mark.parametrize("error_class", [ConfigurationError, TransportError, IndexerError, DataQualityError])
    def test_all_errors_are_scanner_errors(self, error_class):
        assert issubclass(error_class, ScannerError)

    def test_error_attributes(self):
        assert TransportError("down", status=503).status == 503
        assert IndexerError("bad query", [{"message": "x"}]).errors == [{"message": "x"}]
        assert IndexerError("bad query").errors == []
        assert DataQualityError("zero reserve", "0xabc").pool_address == "0xabc"


class TestErrorHandler:
    """Test retry decisions and classification."""

    def test_classify(self, handler):
        assert handler.classify_error(ConfigurationError("x")) == "configuration"
        assert handler.classify_error(TransportError("x")) == "transport"
        assert handler.classify_error(IndexerError("x")) == "indexer"
        assert handler.classify_error(DataQualityError("x")) == "data_quality"
        assert handler.classify_error(KeyError("x")) == "unknown"

    def test_only_transport_errors_retry(self, handler):
        assert handler.should_retry(TransportError("timeout"), attempt=0, max_retries=2)
        assert not handler.should_retry(IndexerError("syntax"), attempt=0, max_retries=2)
        assert not handler.should_retry(ConfigurationError("no key"), attempt=0, max_retries=2)

    def test_retry_budget(self, handler):
        assert not handler.should_retry(TransportError("timeout"), attempt=2, max_retries=2)
        assert not handler.should_retry(TransportError("timeout"), attempt=0, max_retries=0)

    def test_backoff_is_capped(self, handler):
        assert handler.get_retry_delay(0) == 1.0
        assert handler.get_retry_delay(3, base_delay=0.5) == 4.0
        assert handler.get_retry_delay(10) == 60.0

    def test_log_levels(self, handler, caplog):
        with caplog.at_level(logging.WARNING, logger="test.errors"):
            handler.log_error(DataQualityError("zero reserve"), {"pool": "0x1"})
            handler.log_error(TransportError("refused"), {"protocol": "uniswap_v3"})

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.WARNING, logging.ERROR]
        assert "pool=0x1" in caplog.records[0].getMessage()
        assert "protocol=uniswap_v3" in caplog.records[1].getMessage()
