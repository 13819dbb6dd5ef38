import json
import logging
from typing import Any, Dict, List, Optional, Union

from .cache import ClientProvider, ContractCache
from .chains import ChainDescriptor, ChainRegistry
from .errors import ConfigurationError, MetadataFetchFailed, UnsupportedNetwork
from .etherscan_client import EtherscanClient
from .models import ContractMetadata, MetadataAbsent, SourceBundle
from .resolver import ADDRESS_PATTERN, IdentifierResolver

logger = logging.getLogger(__name__)

NOT_VERIFIED_MARKERS = ("not verified", "source code not verified")
Network = Union[str, int, ChainDescriptor]


def _is_not_verified(text: Any) -> bool:
    return isinstance(text, str) and any(marker in text.lower() for marker in NOT_VERIFIED_MARKERS)


def _error_detail(payload: Dict[str, Any]) -> str:
    result = payload.get("result")
    message = payload.get("message", "")
    detail = ""
    if isinstance(result, str):
        detail = result
    elif isinstance(result, list) and result and isinstance(result[0], str):
        detail = result[0]
    return detail or message or "unknown error"


def parse_source_code(raw: str) -> SourceBundle:
    """
    Flatten an explorer SourceCode field.

    Multi-file payloads arrive as standard-json input wrapped in double braces
    (or as a bare `{path: {content}}` map); they become a mapping from base
    filename to content. Directory structure is discarded, so two files with
    the same base name collide and the later one wins. Anything that cannot be
    parsed is returned as the raw string.
    """
    if not raw:
        return ""

    trimmed = raw.strip()
    if trimmed.startswith("{{") and trimmed.endswith("}}"):
        trimmed = trimmed[1:-1]
    if not trimmed.startswith("{"):
        return raw

    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError:
        logger.debug("SourceCode looks like JSON but does not parse; returning it verbatim")
        return raw
    if not isinstance(parsed, dict):
        return raw

    sources = parsed.get("sources") if isinstance(parsed.get("sources"), dict) else parsed
    files: Dict[str, str] = {}
    for path, meta in sources.items():
        if isinstance(meta, dict) and "content" in meta:
            filename = str(path).rsplit("/", 1)[-1] or str(path)
            files[filename] = str(meta.get("content") or "")
    return files or raw


class ContractMetadataProvider:
    """Verified ABI and source lookups against the explorer of one chain per request."""

    def __init__(
        self,
        registry: ChainRegistry,
        resolver: IdentifierResolver,
        explorer: Optional[EtherscanClient],
        clients: Optional[ClientProvider] = None,
        cache_ttl_seconds: float = 300,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._explorer = explorer
        self._clients = clients
        self._abi_cache = ContractCache(cache_ttl_seconds)
        self._metadata_cache = ContractCache(cache_ttl_seconds)

    @property
    def has_explorer(self) -> bool:
        return self._explorer is not None

    def _prepare(self, address: str, network: Network):
        if self._explorer is None:
            raise ConfigurationError("ETHERSCAN_API_KEY is required for contract metadata lookups.")
        chain = self._registry.resolve(network)
        if not chain.explorer_api_url:
            raise UnsupportedNetwork(f"No block explorer integration for {chain.name}.")
        resolved = self._resolver.resolve(address, chain)
        return chain, resolved.address

    def get_abi(self, address: str, network: Network) -> Union[List[Dict[str, Any]], MetadataAbsent]:
        chain, normalized = self._prepare(address, network)

        cached = self._abi_cache.get(normalized, chain.chain_id)
        if cached is not None:
            return cached
        cached_meta = self._metadata_cache.get(normalized, chain.chain_id)
        if cached_meta is not None:
            return cached_meta.abi

        payload = self._explorer.get_abi(normalized, chain.chain_id)
        status = str(payload.get("status", "")).strip()
        result = payload.get("result")

        if status != "1":
            if _is_not_verified(result) or _is_not_verified(payload.get("message")):
                return MetadataAbsent(normalized, chain.chain_id)
            raise MetadataFetchFailed(_error_detail(payload), status=status or None)

        abi = self._parse_abi(result)
        self._abi_cache.set(normalized, chain.chain_id, abi)
        return abi

    def get_source(self, address: str, network: Network) -> Union[SourceBundle, MetadataAbsent]:
        metadata = self.get_metadata(address, network)
        if isinstance(metadata, MetadataAbsent):
            return metadata
        return metadata.source

    def get_metadata(self, address: str, network: Network) -> Union[ContractMetadata, MetadataAbsent]:
        chain, normalized = self._prepare(address, network)

        cached = self._metadata_cache.get(normalized, chain.chain_id)
        if cached is not None:
            return cached

        payload = self._explorer.get_contract_source(normalized, chain.chain_id)
        status = str(payload.get("status", "")).strip()
        result = payload.get("result")

        if status != "1" or not isinstance(result, list) or not result or not isinstance(result[0], dict):
            if _is_not_verified(result) or _is_not_verified(payload.get("message")):
                return MetadataAbsent(normalized, chain.chain_id)
            raise MetadataFetchFailed(_error_detail(payload), status=status or None)

        entry = result[0]
        abi_raw = entry.get("ABI", "")
        source_raw = entry.get("SourceCode", "") or ""
        if _is_not_verified(abi_raw) or (not source_raw and not abi_raw):
            return MetadataAbsent(normalized, chain.chain_id)

        implementation = str(entry.get("Implementation") or "").strip().lower()
        if not ADDRESS_PATTERN.match(implementation):
            implementation = ""
        proxy_flag = str(entry.get("Proxy", "")).strip().lower()

        metadata = ContractMetadata(
            address=normalized,
            chain_id=chain.chain_id,
            abi=self._parse_abi(abi_raw),
            source=parse_source_code(source_raw),
            contract_name=entry.get("ContractName") or "",
            compiler=entry.get("CompilerVersion") or "",
            proxy=proxy_flag in {"1", "true", "yes"} or bool(implementation),
            implementation=implementation or None,
        )
        self._metadata_cache.set(normalized, chain.chain_id, metadata)
        return metadata

    def is_contract(self, address: str, network: Network) -> bool:
        if self._clients is None:
            raise ConfigurationError("is_contract requires a node client provider.")
        chain = self._registry.resolve(network)
        resolved = self._resolver.resolve(address, chain)
        code = self._clients.get(chain).get_code(resolved.address)
        return code.lower() not in {"0x", "0x0", "0x00"}

    def _parse_abi(self, abi_raw: Any) -> List[Dict[str, Any]]:
        if isinstance(abi_raw, list):
            return abi_raw
        try:
            abi = json.loads(abi_raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise MetadataFetchFailed("Invalid ABI returned from Etherscan.") from exc
        if not isinstance(abi, list):
            raise MetadataFetchFailed("Invalid ABI returned from Etherscan.")
        return abi
