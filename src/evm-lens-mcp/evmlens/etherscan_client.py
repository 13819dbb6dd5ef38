import logging
import time
from typing import Any, Dict, Optional

import requests

from .errors import ConfigurationError, MetadataFetchFailed

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("rate limit", "max calls per sec", "too many requests")


class EtherscanClient:
    """Thin wrapper around the Etherscan v2 (multichain) API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout: float = 10,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
    ) -> None:
        if not api_key:
            raise ConfigurationError("ETHERSCAN_API_KEY is required for contract metadata lookups.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.session = requests.Session()

    def get_abi(self, address: str, chain_id: int) -> Dict[str, Any]:
        params = {
            "module": "contract",
            "action": "getabi",
            "address": address,
            "chainid": str(chain_id),
        }
        return self._request(params)

    def get_contract_source(self, address: str, chain_id: int) -> Dict[str, Any]:
        params = {
            "module": "contract",
            "action": "getsourcecode",
            "address": address,
            "chainid": str(chain_id),
        }
        return self._request(params)

    def _is_rate_limited(self, payload: Dict[str, Any]) -> bool:
        if str(payload.get("status", "")) == "1":
            return False
        text = " ".join(v for v in (payload.get("message"), payload.get("result")) if isinstance(v, str)).lower()
        return any(marker in text for marker in RATE_LIMIT_MARKERS)

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        merged = {**params, "apikey": self.api_key}

        for attempt in range(1, self.max_retries + 1):
            last = attempt >= self.max_retries
            logger.debug("GET %s action=%s address=%s", self.base_url, params.get("action"), params.get("address"))
            try:
                response = self.session.get(
                    self.base_url,
                    params=merged,
                    timeout=self.timeout,
                )
            except requests.Timeout as exc:
                if not last:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise MetadataFetchFailed(f"request timed out after {self.timeout}s", status="timeout") from exc
            except requests.RequestException as exc:
                if not last:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise MetadataFetchFailed(str(exc)) from exc

            if response.status_code >= 500 and not last:
                time.sleep(self.backoff_seconds * attempt)
                continue
            if response.status_code >= 400:
                raise MetadataFetchFailed(
                    (response.text or response.reason or "HTTP error").strip()[:500],
                    status=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise MetadataFetchFailed("Failed to parse response from Etherscan.", status=response.status_code) from exc
            if not isinstance(payload, dict):
                raise MetadataFetchFailed("Unexpected response from Etherscan.", status=response.status_code)

            if self._is_rate_limited(payload):
                if not last:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise MetadataFetchFailed(str(payload.get("result") or payload.get("message")), status="rate-limited")
            return payload

        raise RuntimeError("Request failed without raising an exception.")
