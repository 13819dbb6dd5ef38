import itertools
import logging
import time
from typing import Any, Dict, Optional

import requests

from .errors import RpcError

logger = logging.getLogger(__name__)


class RpcClient:
    """Minimal JSON-RPC 2.0 client for EVM nodes and JSON-RPC style services (HTTP POST)."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(dict(headers))
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[Any] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        if params is None:
            params = []
        if not isinstance(params, (list, dict)):
            raise ValueError("params must be a list or an object.")

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        last_error: Optional[RpcError] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._send(payload)
            except RpcError as exc:
                last_error = exc
                retryable = exc.status == 429 or (isinstance(exc.status, int) and exc.status >= 500)
                if not retryable or attempt >= self.max_retries:
                    raise
                logger.debug("Retrying %s after %s (attempt %d)", method, exc, attempt)
                time.sleep(self.backoff_seconds * attempt)

        if last_error:
            raise last_error
        raise RuntimeError("RPC request failed without raising an exception.")

    def _send(self, payload: Dict[str, Any]) -> Any:
        logger.debug("POST %s method=%s", self.rpc_url, payload["method"])
        try:
            response = self.session.post(
                self.rpc_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise RpcError(f"request timed out after {self.timeout}s", status="timeout") from exc
        except requests.RequestException as exc:
            raise RpcError(str(exc)) from exc

        if response.status_code >= 400:
            raise RpcError(
                (response.text or response.reason or "HTTP error").strip()[:500],
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RpcError("Unexpected JSON-RPC response (invalid JSON).", status=response.status_code) from exc
        if not isinstance(data, dict):
            raise RpcError("Unexpected JSON-RPC response (non-object).", status=response.status_code)

        error = data.get("error")
        if isinstance(error, dict):
            detail = ": ".join(str(part) for part in (error.get("message"), error.get("data")) if part)
            raise RpcError(detail or "unknown error", status=error.get("code"))

        if "result" not in data:
            raise RpcError("Unexpected JSON-RPC response (missing result).", status=response.status_code)
        return data.get("result")

    def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        result = self.call("eth_getTransactionByHash", [tx_hash])
        if result is not None and not isinstance(result, dict):
            raise RpcError("eth_getTransactionByHash returned unexpected result.")
        return result

    def get_code(self, address: str, block_tag: str = "latest") -> str:
        result = self.call("eth_getCode", [address, block_tag])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError("eth_getCode returned unexpected result.")
        return result

    def eth_call(self, to: str, data: str, block_tag: str = "latest") -> str:
        result = self.call("eth_call", [{"to": to, "data": data}, block_tag])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError("eth_call returned unexpected result.")
        return result
