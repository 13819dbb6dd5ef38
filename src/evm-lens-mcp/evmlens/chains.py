from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from .errors import UnsupportedNetwork

_WORD_RE = re.compile(r"[a-z0-9]+")
_SPACE_RE = re.compile(r"[\s_\-]+")

ETHERSCAN_V2_API_URL = "https://api.etherscan.io/v2/api"


def _norm(text: str) -> str:
    candidate = (text or "").strip().lower()
    candidate = _SPACE_RE.sub(" ", candidate)
    candidate = " ".join(_WORD_RE.findall(candidate))
    return candidate


def _slug(text: str) -> str:
    return _norm(text).replace(" ", "-")


@dataclass(frozen=True)
class ChainDescriptor:
    chain_id: int
    name: str
    rpc_url: str
    aliases: FrozenSet[str] = field(default_factory=frozenset)
    explorer_api_url: Optional[str] = ETHERSCAN_V2_API_URL
    trace_url: Optional[str] = None
    indexer_url: Optional[str] = None
    supports_internal_transfers: bool = False

    @property
    def label(self) -> str:
        return _slug(self.name)

    def to_dict(self) -> Dict[str, object]:
        return {
            "chain_id": self.chain_id,
            "name": self.name,
            "label": self.label,
            "aliases": sorted(self.aliases),
            "rpc_url": self.rpc_url,
            "explorer_api_url": self.explorer_api_url,
            "has_trace_service": self.trace_url is not None,
            "has_index_service": self.indexer_url is not None,
        }


def _chain(
    chain_id: int,
    name: str,
    rpc_url: str,
    aliases: Iterable[str] = (),
    trace: Optional[str] = None,
    alchemy: Optional[str] = None,
    internal: bool = False,
) -> ChainDescriptor:
    return ChainDescriptor(
        chain_id=chain_id,
        name=name,
        rpc_url=rpc_url,
        aliases=frozenset(aliases),
        trace_url=f"https://{trace}.gateway.tenderly.co" if trace else None,
        indexer_url=f"https://{alchemy}.g.alchemy.com/v2" if alchemy else None,
        supports_internal_transfers=internal,
    )


DEFAULT_CHAINS: List[ChainDescriptor] = [
    # Mainnets
    _chain(1, "Ethereum Mainnet", "https://eth.llamarpc.com",
           ("ethereum", "mainnet", "eth"), trace="mainnet", alchemy="eth-mainnet", internal=True),
    _chain(10, "Optimism", "https://mainnet.optimism.io",
           ("optimism", "op"), trace="optimism", alchemy="opt-mainnet"),
    _chain(42161, "Arbitrum One", "https://arb1.arbitrum.io/rpc",
           ("arbitrum", "arb", "arb1"), trace="arbitrum", alchemy="arb-mainnet"),
    _chain(42170, "Arbitrum Nova", "https://nova.arbitrum.io/rpc",
           ("arbitrum-nova", "nova"), trace="arbitrum-nova", alchemy="arbnova-mainnet"),
    _chain(8453, "Base", "https://mainnet.base.org",
           ("base",), trace="base", alchemy="base-mainnet"),
    _chain(137, "Polygon", "https://polygon-rpc.com",
           ("polygon", "matic"), trace="polygon", alchemy="polygon-mainnet", internal=True),
    _chain(43114, "Avalanche C-Chain", "https://api.avax.network/ext/bc/C/rpc",
           ("avalanche", "avax"), trace="avalanche", alchemy="avax-mainnet"),
    _chain(56, "BNB Smart Chain", "https://bsc-dataseed.binance.org",
           ("bsc", "bnb", "binance"), trace="bsc", alchemy="bnb-mainnet"),
    _chain(59144, "Linea", "https://rpc.linea.build",
           ("linea",), trace="linea", alchemy="linea-mainnet"),
    _chain(534352, "Scroll", "https://rpc.scroll.io",
           ("scroll",), trace="scroll", alchemy="scroll-mainnet"),
    _chain(100, "Gnosis", "https://rpc.gnosischain.com",
           ("gnosis", "xdai"), trace="gnosis", alchemy="gnosis-mainnet"),
    _chain(324, "zkSync Era", "https://mainnet.era.zksync.io",
           ("zksync",), alchemy="zksync-mainnet"),
    _chain(5000, "Mantle", "https://rpc.mantle.xyz",
           ("mantle",), trace="mantle", alchemy="mantle-mainnet"),
    _chain(81457, "Blast", "https://rpc.blast.io",
           ("blast",), trace="blast", alchemy="blast-mainnet"),
    _chain(250, "Fantom", "https://rpc.ftm.tools", ("fantom", "ftm")),
    _chain(42220, "Celo", "https://forno.celo.org", ("celo",), alchemy="celo-mainnet"),
    # Testnets
    _chain(11155111, "Sepolia", "https://sepolia.drpc.org",
           ("sepolia",), trace="sepolia", alchemy="eth-sepolia"),
    _chain(17000, "Holesky", "https://ethereum-holesky-rpc.publicnode.com",
           ("holesky",), trace="holesky", alchemy="eth-holesky"),
    _chain(421614, "Arbitrum Sepolia", "https://sepolia-rpc.arbitrum.io/rpc",
           ("arbitrum-sepolia", "arb-sepolia"), trace="arbitrum-sepolia", alchemy="arb-sepolia"),
    _chain(84532, "Base Sepolia", "https://sepolia.base.org",
           ("base-sepolia",), trace="base-sepolia", alchemy="base-sepolia"),
    _chain(11155420, "Optimism Sepolia", "https://sepolia.optimism.io",
           ("optimism-sepolia", "op-sepolia"), trace="optimism-sepolia", alchemy="opt-sepolia"),
    _chain(80002, "Polygon Amoy", "https://rpc-amoy.polygon.technology",
           ("polygon-amoy", "amoy"), trace="polygon-amoy", alchemy="polygon-amoy"),
]


class ChainRegistry:
    """
    Static chain table.
    - Resolves network input by numeric chain id, chain name, slug, or alias.
    - Descriptors are immutable; the registry never changes after construction.
    """

    def __init__(self, chains: Optional[Iterable[ChainDescriptor]] = None) -> None:
        self._chains: Dict[int, ChainDescriptor] = {}
        self._index: Dict[str, int] = {}
        for chain in chains if chains is not None else DEFAULT_CHAINS:
            self._chains[chain.chain_id] = chain
        self._rebuild_index()

    def _rebuild_index(self) -> None:
        idx: Dict[str, int] = {}

        def add(key: str, chain_id: int) -> None:
            normalized = _norm(key)
            if normalized:
                idx.setdefault(normalized, chain_id)

        for chain_id, chain in self._chains.items():
            add(str(chain_id), chain_id)
            add(chain.name, chain_id)
            for alias in chain.aliases:
                add(alias, chain_id)

        self._index = idx

    def list_chains(self) -> List[ChainDescriptor]:
        return [self._chains[cid] for cid in sorted(self._chains)]

    def resolve(self, network: Union[str, int, ChainDescriptor, None]) -> ChainDescriptor:
        if isinstance(network, ChainDescriptor):
            return network
        if network is None:
            raise UnsupportedNetwork("network must be provided.")
        if isinstance(network, bool):
            raise UnsupportedNetwork("network must be a chain name or numeric chain id.")
        if isinstance(network, int):
            chain = self._chains.get(network)
            if chain is None:
                raise UnsupportedNetwork(f"Unsupported chain id {network}.")
            return chain

        raw = str(network).strip()
        if not raw:
            raise UnsupportedNetwork("network must be a non-empty string.")
        if raw.isdigit():
            return self.resolve(int(raw))

        chain_id = self._index.get(_norm(raw))
        if chain_id is None:
            supported = ", ".join(sorted(chain.label for chain in self._chains.values()))
            raise UnsupportedNetwork(
                f"Unknown network '{raw}'. Supported: {supported}, or a numeric chain id."
            )
        return self._chains[chain_id]
