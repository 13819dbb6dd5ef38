import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from .alchemy_client import AlchemyClient
from .cache import ClientProvider
from .chains import ChainDescriptor, ChainRegistry
from .config import Config
from .decoder import CallDataDecoder
from .errors import ConfigurationError
from .etherscan_client import EtherscanClient
from .history import TransferHistoryAggregator
from .metadata import ContractMetadataProvider
from .models import MetadataAbsent, TransferRecord
from .resolver import IdentifierResolver, RegistryNameService
from .trace import TransactionTraceClient

logger = logging.getLogger(__name__)


class EvmLensService:
    """Wire configuration, chain table, and clients into the resolve/decode/history operations."""

    def __init__(self, config: Config, registry: Optional[ChainRegistry] = None) -> None:
        self.config = config
        self.registry = registry or ChainRegistry()
        default_chain = self.registry.resolve(config.network)

        overrides = {default_chain.chain_id: config.rpc_url_override} if config.rpc_url_override else None
        self.clients = ClientProvider(
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            backoff_seconds=config.backoff_seconds,
            rpc_overrides=overrides,
        )
        self.resolver = IdentifierResolver(self.registry, RegistryNameService(self.clients))

        explorer: Optional[EtherscanClient] = None
        if config.etherscan_api_key:
            explorer = EtherscanClient(
                api_key=config.etherscan_api_key,
                base_url=config.etherscan_base_url,
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                backoff_seconds=config.backoff_seconds,
            )
        else:
            logger.info("ETHERSCAN_API_KEY not set; call data is decoded without verified ABIs")
        self.metadata = ContractMetadataProvider(
            self.registry,
            self.resolver,
            explorer,
            clients=self.clients,
            cache_ttl_seconds=config.metadata_cache_ttl_seconds,
        )

        self.trace_client: Optional[TransactionTraceClient] = None
        if config.tenderly_api_key:
            self.trace_client = TransactionTraceClient(
                self.registry, config.tenderly_api_key, timeout=config.request_timeout
            )

        self.history_aggregator: Optional[TransferHistoryAggregator] = None
        if config.alchemy_api_key:
            self.history_aggregator = TransferHistoryAggregator(
                self.registry,
                self.resolver,
                AlchemyClient(config.alchemy_api_key, timeout=config.request_timeout),
                max_pages=config.history_max_pages,
            )

        self.decoder = CallDataDecoder(
            self.registry,
            self.clients,
            metadata=self.metadata if self.metadata.has_explorer else None,
            trace_client=self.trace_client,
            default_network=default_chain,
        )

    def _chain(self, network: Optional[Union[str, int]]) -> ChainDescriptor:
        return self.registry.resolve(network if network not in (None, "") else self.config.network)

    def _require_trace(self) -> TransactionTraceClient:
        if self.trace_client is None:
            raise ConfigurationError("TENDERLY_NODE_RPC_KEY is required for the trace service.")
        return self.trace_client

    def _require_history(self) -> TransferHistoryAggregator:
        if self.history_aggregator is None:
            raise ConfigurationError("ALCHEMY_API_KEY is required for transfer history.")
        return self.history_aggregator

    def _context(self, chain: ChainDescriptor) -> Dict[str, Any]:
        return {"network": chain.label, "chain_id": chain.chain_id}

    def list_networks(self) -> List[Dict[str, Any]]:
        return [chain.to_dict() for chain in self.registry.list_chains()]

    def resolve(self, identifier: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        resolved = self.resolver.resolve(identifier, chain)
        return {
            **self._context(chain),
            "input": identifier,
            "address": resolved.address,
            "checksum_address": resolved.checksum,
            "ens_name": resolved.alias,
        }

    def get_abi(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        resolved = self.resolver.resolve(address, chain)
        abi = self.metadata.get_abi(resolved.address, chain)
        if isinstance(abi, MetadataAbsent):
            return {**self._context(chain), "address": abi.address, "verified": False, "abi": None, "reason": abi.reason}
        return {**self._context(chain), "address": resolved.address, "verified": True, "abi": abi}

    def get_source(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        resolved = self.resolver.resolve(address, chain)
        source = self.metadata.get_source(resolved.address, chain)
        if isinstance(source, MetadataAbsent):
            return {**self._context(chain), "address": source.address, "verified": False, "source": None, "reason": source.reason}
        return {**self._context(chain), "address": resolved.address, "verified": True, "source": source}

    def get_contract_metadata(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        meta = self.metadata.get_metadata(address, chain)
        if isinstance(meta, MetadataAbsent):
            return {**self._context(chain), "address": meta.address, "verified": False, "reason": meta.reason}
        return {
            **self._context(chain),
            "address": meta.address,
            "verified": True,
            "contract_name": meta.contract_name,
            "compiler": meta.compiler,
            "proxy": meta.proxy,
            "implementation": meta.implementation,
            "abi": meta.abi,
            "source_files": sorted(meta.source) if isinstance(meta.source, dict) else None,
        }

    def is_contract(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        resolved = self.resolver.resolve(address, chain)
        return {
            **self._context(chain),
            "address": resolved.address,
            "is_contract": self.metadata.is_contract(resolved.address, chain),
        }

    def decode(self, calldata: str, abi: Optional[List[Dict[str, Any]]] = None, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        decoded = self.decoder.decode(calldata, abi, chain)
        return {**self._context(chain), **decoded.to_dict()}

    def decode_for_transaction(self, tx_hash: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        decoded = self.decoder.decode_for_transaction(tx_hash, chain)
        return {**self._context(chain), "tx_hash": tx_hash.strip().lower(), **decoded.to_dict()}

    def history(
        self,
        address: str,
        counterpart: Optional[str] = None,
        network: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        chain = self._chain(network)
        records = self._require_history().history(address, counterpart, chain, categories)
        return self._history_payload(chain, address, records, counterpart=counterpart)

    def transaction_history(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        records = self._require_history().transaction_history(address, chain)
        return self._history_payload(chain, address, records)

    def recent_transfers(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        records = self._require_history().recent_transfers(address, chain)
        return self._history_payload(chain, address, records)

    def _history_payload(
        self,
        chain: ChainDescriptor,
        address: str,
        records: List[TransferRecord],
        counterpart: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            **self._context(chain),
            "address": address,
            "counterpart": counterpart,
            "count": len(records),
            "transfers": [record.to_dict() for record in records],
        }

    def trace(self, tx_hash: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        result = self._require_trace().trace(tx_hash, chain)
        return {**self._context(chain), "tx_hash": tx_hash.strip().lower(), "trace": result}

    def decode_selector(self, calldata: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        heuristic = self._require_trace().decode_selector(calldata, chain)
        return {
            **self._context(chain),
            "function_name": heuristic.name,
            "signature": heuristic.signature,
            "source": "heuristic",
            "args": [
                {"name": name, "type": value.abi_type, "kind": value.kind, "value": value.to_json()}
                for name, value in zip(heuristic.arg_names, heuristic.args)
            ],
        }

    def function_name_from_selector(self, selector: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self._chain(network)
        name = self._require_trace().function_name(selector, chain)
        return {**self._context(chain), "selector": selector, "function_name": name}
