"""
Call-data decoding.

Two tiers, tried in order:

1. local: the selector is matched against a verified ABI and the argument
   bytes are decoded with eth_abi. Results are tagged ``abi``.
2. remote: the call data is sent to the trace service's signature database.
   Argument types come from the service's own inference, so results are tagged
   ``heuristic`` and are never promoted to ``abi``.

When both tiers fail the decoder raises DecodeExhausted.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError, ParseError

from .abi import decode_type, function_selectors, function_signature, tag_value
from .cache import ClientProvider
from .chains import ChainDescriptor, ChainRegistry
from .errors import (
    DecodeExhausted,
    InvalidCallDataFormat,
    MetadataFetchFailed,
    TraceServiceError,
    TransactionNotFound,
    UnsupportedNetwork,
)
from .metadata import ContractMetadataProvider
from .models import DecodedCall, DecodeSource, MetadataAbsent
from .trace import TransactionTraceClient
from .validation import normalize_calldata, normalize_tx_hash

logger = logging.getLogger(__name__)

Abi = Sequence[Dict[str, Any]]
Network = Union[str, int, ChainDescriptor]


class CallDataDecoder:
    def __init__(
        self,
        registry: ChainRegistry,
        clients: ClientProvider,
        metadata: Optional[ContractMetadataProvider] = None,
        trace_client: Optional[TransactionTraceClient] = None,
        default_network: Network = "ethereum",
    ) -> None:
        self._registry = registry
        self._clients = clients
        self._metadata = metadata
        self._trace = trace_client
        self._default_network = default_network

    def decode(
        self,
        calldata: Union[str, bytes],
        abi: Union[Abi, MetadataAbsent, None],
        network: Optional[Network] = None,
    ) -> DecodedCall:
        normalized = normalize_calldata(calldata)

        if abi and not isinstance(abi, MetadataAbsent):
            decoded = self._decode_local(normalized, abi)
            if decoded is not None:
                return decoded

        return self._decode_remote(normalized, network if network is not None else self._default_network)

    def decode_for_transaction(self, tx_hash: str, network: Optional[Network] = None) -> DecodedCall:
        normalized_hash = normalize_tx_hash(tx_hash)
        chain = self._registry.resolve(network if network is not None else self._default_network)

        tx = self._clients.get(chain).get_transaction(normalized_hash)
        if tx is None:
            raise TransactionNotFound(normalized_hash)

        calldata = tx.get("input") or tx.get("data") or "0x"
        if calldata in ("0x", "0x0"):
            raise InvalidCallDataFormat(f"Transaction {normalized_hash} carries no call data.")
        calldata = normalize_calldata(calldata)

        target = tx.get("to")
        abi: Union[Abi, MetadataAbsent, None] = None
        metadata_error: Optional[MetadataFetchFailed] = None
        if target and self._metadata is not None:
            try:
                abi = self._metadata.get_abi(target, chain)
            except MetadataFetchFailed as exc:
                logger.warning("ABI lookup for %s failed, continuing with heuristic decode: %s", target, exc)
                metadata_error = exc

        try:
            return self.decode(calldata, abi, chain)
        except DecodeExhausted as exc:
            if metadata_error is not None and exc.cause is None:
                raise DecodeExhausted(exc.selector, metadata_error) from metadata_error
            raise

    def _decode_local(self, calldata: str, abi: Abi) -> Optional[DecodedCall]:
        selector = calldata[:10]
        entry = function_selectors(abi).get(selector)
        if entry is None:
            logger.debug("Selector %s not present in ABI", selector)
            return None

        inputs: List[Dict[str, Any]] = list(entry.get("inputs") or [])
        types = [decode_type(inp) for inp in inputs]
        try:
            values = abi_decode(types, bytes.fromhex(calldata[10:]))
        except (DecodingError, ParseError, ValueError, TypeError, OverflowError) as exc:
            logger.debug("Local decode of %s as %s failed: %s", selector, types, exc)
            return None

        return DecodedCall(
            function_name=entry["name"],
            args=tuple(tag_value(inp, value) for inp, value in zip(inputs, values)),
            source=DecodeSource.ABI,
            selector=selector,
            signature=function_signature(entry),
            arg_names=tuple(inp.get("name") or None for inp in inputs),
        )

    def _decode_remote(self, calldata: str, network: Network) -> DecodedCall:
        selector = calldata[:10]
        if self._trace is None:
            raise DecodeExhausted(selector)

        try:
            heuristic = self._trace.decode_selector(calldata, network)
        except (TraceServiceError, UnsupportedNetwork) as exc:
            raise DecodeExhausted(selector, exc) from exc

        logger.debug("Heuristic decode of %s -> %s", selector, heuristic.name)
        return DecodedCall(
            function_name=heuristic.name,
            args=heuristic.args,
            source=DecodeSource.HEURISTIC,
            selector=selector,
            signature=heuristic.signature,
            arg_names=heuristic.arg_names,
        )
