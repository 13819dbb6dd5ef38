import pytest

from evmlens.config import load_config

ENV_VARS = [
    "ETHERSCAN_API_KEY",
    "ETHERSCAN_BASE_URL",
    "ALCHEMY_API_KEY",
    "TENDERLY_NODE_RPC_KEY",
    "NETWORK",
    "RPC_URL",
    "REQUEST_TIMEOUT",
    "REQUEST_RETRIES",
    "REQUEST_BACKOFF_SECONDS",
    "METADATA_CACHE_TTL_SECONDS",
    "HISTORY_MAX_PAGES",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg.etherscan_api_key is None
    assert cfg.network == "ethereum"
    assert cfg.etherscan_base_url == "https://api.etherscan.io/v2/api"
    assert cfg.request_timeout == 10.0
    assert cfg.max_retries == 1
    assert cfg.history_max_pages == 5
    assert cfg.log_level == "WARNING"


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("ETHERSCAN_API_KEY", "  abc  ")
    monkeypatch.setenv("TENDERLY_NODE_RPC_KEY", "")
    monkeypatch.setenv("NETWORK", "Base")
    monkeypatch.setenv("ETHERSCAN_BASE_URL", "https://proxy.example/api/")
    monkeypatch.setenv("REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("REQUEST_RETRIES", "0")
    monkeypatch.setenv("METADATA_CACHE_TTL_SECONDS", "-5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.etherscan_api_key == "abc"
    assert cfg.tenderly_api_key is None
    assert cfg.network == "base"
    assert cfg.etherscan_base_url == "https://proxy.example/api"
    assert cfg.request_timeout == 2.5
    assert cfg.max_retries == 1
    assert cfg.metadata_cache_ttl_seconds == 0
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize("name, value", [("REQUEST_TIMEOUT", "0"), ("HISTORY_MAX_PAGES", "0"), ("REQUEST_TIMEOUT", "soon")])
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        load_config()
