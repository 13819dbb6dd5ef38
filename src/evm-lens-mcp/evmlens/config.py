import logging
import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

DEFAULT_ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"
DEFAULT_NETWORK = "ethereum"


@dataclass
class Config:
    etherscan_api_key: Optional[str] = None
    alchemy_api_key: Optional[str] = None
    tenderly_api_key: Optional[str] = None
    etherscan_base_url: str = DEFAULT_ETHERSCAN_BASE_URL
    network: str = DEFAULT_NETWORK
    rpc_url_override: Optional[str] = None
    request_timeout: float = 10.0
    max_retries: int = 1
    backoff_seconds: float = 0.5
    metadata_cache_ttl_seconds: int = 300
    history_max_pages: int = 5
    log_level: str = "WARNING"


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_config() -> Config:
    """Load configuration from environment variables."""
    timeout = float(os.getenv("REQUEST_TIMEOUT", "10"))
    if timeout <= 0:
        raise ConfigurationError("REQUEST_TIMEOUT must be a positive number of seconds.")

    max_retries = int(os.getenv("REQUEST_RETRIES", "1"))
    backoff = float(os.getenv("REQUEST_BACKOFF_SECONDS", "0.5"))
    ttl = int(os.getenv("METADATA_CACHE_TTL_SECONDS", "300"))
    max_pages = int(os.getenv("HISTORY_MAX_PAGES", "5"))
    if max_pages < 1:
        raise ConfigurationError("HISTORY_MAX_PAGES must be at least 1.")

    return Config(
        etherscan_api_key=_env_str("ETHERSCAN_API_KEY"),
        alchemy_api_key=_env_str("ALCHEMY_API_KEY"),
        tenderly_api_key=_env_str("TENDERLY_NODE_RPC_KEY"),
        etherscan_base_url=(_env_str("ETHERSCAN_BASE_URL") or DEFAULT_ETHERSCAN_BASE_URL).rstrip("/"),
        network=(_env_str("NETWORK") or DEFAULT_NETWORK).lower(),
        rpc_url_override=_env_str("RPC_URL"),
        request_timeout=timeout,
        max_retries=max(1, max_retries),
        backoff_seconds=backoff,
        metadata_cache_ttl_seconds=max(0, ttl),
        history_max_pages=max_pages,
        log_level=(_env_str("LOG_LEVEL") or "WARNING").upper(),
    )


def configure_logging(level: str = "WARNING") -> None:
    """Route log records to stderr; stdout stays reserved for JSON output and MCP stdio."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
