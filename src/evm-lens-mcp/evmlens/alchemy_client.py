import logging
from typing import Any, Callable, Dict, Optional

from .cache import ClientProvider
from .chains import ChainDescriptor
from .errors import ConfigurationError, IndexServiceError, RpcError, UnsupportedNetwork
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)


class AlchemyClient:
    """alchemy_getAssetTransfers over the per-chain Alchemy JSON-RPC endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 10,
        factory: Optional[Callable[[str], RpcClient]] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("ALCHEMY_API_KEY is required for transfer history.")
        self._api_key = api_key
        self._clients = ClientProvider(
            timeout=timeout,
            max_retries=1,
            factory=factory,
            url_for=self._endpoint,
        )

    def _endpoint(self, chain: ChainDescriptor) -> str:
        return f"{chain.indexer_url}/{self._api_key}"

    def get_asset_transfers(self, chain: ChainDescriptor, params: Dict[str, Any]) -> Dict[str, Any]:
        if not chain.indexer_url:
            raise UnsupportedNetwork(f"No asset-indexing service is configured for {chain.name}.")
        client = self._clients.get(chain)
        try:
            result = client.call("alchemy_getAssetTransfers", [params])
        except RpcError as exc:
            raise IndexServiceError(exc.upstream_message, status=exc.status) from exc
        if not isinstance(result, dict) or not isinstance(result.get("transfers"), list):
            raise IndexServiceError("alchemy_getAssetTransfers returned an unexpected result.")
        return result
