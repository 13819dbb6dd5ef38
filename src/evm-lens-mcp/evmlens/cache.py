import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from .chains import ChainDescriptor
from .rpc_client import RpcClient


class ContractCache:
    """In-memory cache keyed by chain id + address, with per-entry TTL.

    Only verified (positive) metadata is stored; callers never cache absence.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._memory: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _key(self, address: str, chain_id: int) -> str:
        return f"{chain_id}:{address.lower()}"

    def get(self, address: str, chain_id: int) -> Optional[Any]:
        key = self._key(address, chain_id)
        with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                return None
            stored_at, data = entry
            if self._clock() - stored_at > self._ttl:
                del self._memory[key]
                return None
            return data

    def set(self, address: str, chain_id: int, data: Any) -> None:
        if self._ttl <= 0:
            return
        key = self._key(address, chain_id)
        with self._lock:
            self._memory[key] = (self._clock(), data)


class ClientProvider:
    """Thread-safe get-or-create cache of node clients, one per chain."""

    def __init__(
        self,
        timeout: float = 10,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
        rpc_overrides: Optional[Dict[int, str]] = None,
        factory: Optional[Callable[[str], RpcClient]] = None,
        url_for: Optional[Callable[[ChainDescriptor], str]] = None,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._overrides = dict(rpc_overrides or {})
        self._factory = factory
        self._url_for = url_for
        self._clients: Dict[int, RpcClient] = {}
        self._lock = threading.Lock()

    def get(self, chain: ChainDescriptor) -> RpcClient:
        with self._lock:
            client = self._clients.get(chain.chain_id)
            if client is None:
                if self._url_for is not None:
                    url = self._url_for(chain)
                else:
                    url = self._overrides.get(chain.chain_id, chain.rpc_url)
                client = self._create(url)
                self._clients[chain.chain_id] = client
            return client

    def _create(self, url: str) -> RpcClient:
        if self._factory is not None:
            return self._factory(url)
        return RpcClient(
            url,
            timeout=self._timeout,
            max_retries=self._max_retries,
            backoff_seconds=self._backoff_seconds,
        )
