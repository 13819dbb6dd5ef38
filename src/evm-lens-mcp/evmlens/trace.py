import logging
import re
from typing import Any, Callable, Dict, List, Optional, Union

from .abi import tag_value
from .cache import ClientProvider
from .chains import ChainDescriptor, ChainRegistry
from .errors import ConfigurationError, RpcError, TraceServiceError, UnsupportedNetwork
from .models import HeuristicDecode
from .rpc_client import RpcClient
from .validation import normalize_calldata, normalize_tx_hash

logger = logging.getLogger(__name__)

SELECTOR_PATTERN = re.compile(r"^0x[0-9a-f]{8}$")
Network = Union[str, int, ChainDescriptor]


class TransactionTraceClient:
    """Pass-through to a Tenderly node's trace and decode methods. One attempt per call."""

    def __init__(
        self,
        registry: ChainRegistry,
        api_key: Optional[str],
        timeout: float = 10,
        factory: Optional[Callable[[str], RpcClient]] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("TENDERLY_NODE_RPC_KEY is required for the trace service.")
        self._registry = registry
        self._api_key = api_key
        self._clients = ClientProvider(
            timeout=timeout,
            max_retries=1,
            factory=factory,
            url_for=self._endpoint,
        )

    def _endpoint(self, chain: ChainDescriptor) -> str:
        return f"{chain.trace_url}/{self._api_key}"

    def _client(self, network: Network) -> RpcClient:
        chain = self._registry.resolve(network)
        if not chain.trace_url:
            raise UnsupportedNetwork(f"No trace service is configured for {chain.name}.")
        return self._clients.get(chain)

    def _call(self, network: Network, method: str, params: List[Any]) -> Any:
        client = self._client(network)
        try:
            return client.call(method, params)
        except RpcError as exc:
            raise TraceServiceError(exc.upstream_message, status=exc.status) from exc

    def trace(self, tx_hash: str, network: Network) -> Dict[str, Any]:
        normalized = normalize_tx_hash(tx_hash)
        result = self._call(network, "tenderly_traceTransaction", [normalized])
        if not isinstance(result, dict):
            raise TraceServiceError("tenderly_traceTransaction returned an unexpected result.")
        return result

    def decode_selector(self, calldata: Union[str, bytes], network: Network) -> HeuristicDecode:
        normalized = normalize_calldata(calldata)
        result = self._call(network, "tenderly_decodeInput", [normalized])
        decoded = parse_decoded_input(result)
        if decoded is None:
            raise TraceServiceError(f"No function signature known for selector {normalized[:10]}.")
        return decoded

    def function_name(self, selector: str, network: Network) -> str:
        candidate = (selector or "").strip().lower()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"
        if not SELECTOR_PATTERN.match(candidate):
            normalize_calldata(candidate)
            candidate = candidate[:10]
        return self.decode_selector(candidate, network).name


def parse_decoded_input(result: Any) -> Optional[HeuristicDecode]:
    """Interpret a decodeInput answer; None when the service does not know the function."""
    if not isinstance(result, dict):
        return None
    name = result.get("name") or result.get("function_name") or result.get("functionName")
    if not isinstance(name, str) or not name:
        return None
    if "(" in name:
        name = name.split("(", 1)[0]

    raw_args = result.get("decodedArguments")
    if raw_args is None:
        raw_args = result.get("args") or result.get("inputs") or []
    if not isinstance(raw_args, list):
        raw_args = []

    args = []
    names = []
    for item in raw_args:
        if isinstance(item, dict):
            soltype = item.get("soltype") if isinstance(item.get("soltype"), dict) else {}
            param = {
                "type": soltype.get("type") or item.get("type") or "",
                "components": soltype.get("components") or item.get("components") or [],
            }
            names.append(soltype.get("name") or item.get("name") or None)
            args.append(tag_value(param, item.get("value")))
        else:
            names.append(None)
            args.append(tag_value({"type": ""}, item))

    signature = result.get("signature") if isinstance(result.get("signature"), str) else None
    return HeuristicDecode(name=name, args=tuple(args), arg_names=tuple(names), signature=signature)
