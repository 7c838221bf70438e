import pytest


@pytest.fixture
def clean_env(monkeypatch):
    # Settings must come from the test, not from a developer's .env
    for name in (
        "ENVIRONMENT",
        "RPC_URL",
        "THE_GRAPH_API_KEY",
        "GRAPH_GATEWAY_BASE",
        "PROTOCOLS_JSON",
        "TOKENS_JSON",
        "SUBGRAPH_TIMEOUT_SECONDS",
        "SUBGRAPH_MAX_RETRIES",
        "DISCOVERY_CONCURRENT",
        "ABORT_ON_TRANSPORT_ERROR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "local")
    return monkeypatch
