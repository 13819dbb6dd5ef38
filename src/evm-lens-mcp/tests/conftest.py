from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from eth_abi import decode, encode

from evmlens.cache import ClientProvider
from evmlens.chains import ChainRegistry
from evmlens.resolver import IdentifierResolver, RegistryNameService
from evmlens.rpc_client import RpcClient


class FakeRpcClient(RpcClient):
    """RpcClient whose transport is a method -> response table.

    A response may be a plain value, an exception instance (raised), or a
    callable receiving the params list.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None, url: str = "http://fake.invalid") -> None:
        super().__init__(url)
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[Tuple[str, Any]] = []

    def call(self, method: str, params: Optional[Any] = None) -> Any:
        self.calls.append((method, params))
        handler = self.responses.get(method)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(params)
        return handler


def single_client_provider(client: RpcClient) -> ClientProvider:
    urls: List[str] = []

    def factory(url: str) -> RpcClient:
        urls.append(url)
        return client

    provider = ClientProvider(factory=factory)
    provider.created_urls = urls  # type: ignore[attr-defined]
    return provider


def word(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def ens_eth_call(
    records: Dict[str, str],
    resolver_address: str = "0x" + "4" * 40,
    wildcards: Optional[Dict[str, Dict[str, str]]] = None,
    extended_address: str = "0x" + "5" * 40,
) -> Callable[[List[Any]], str]:
    """eth_call handler answering registry/resolver lookups for the given name -> address table.

    ``wildcards`` maps a parent name to the subnames its extended resolver
    answers through ``resolve(bytes,bytes)``; the subnames have no registry entry.
    """
    from evmlens.resolver import (
        ADDR_SELECTOR,
        ENS_REGISTRY,
        RESOLVE_SELECTOR,
        RESOLVER_SELECTOR,
        SUPPORTS_INTERFACE_SELECTOR,
        namehash,
    )

    zero = "0x" + "0" * 64
    wildcards = wildcards or {}
    nodes = {namehash(name).hex(): address for name, address in records.items()}
    parents = {namehash(name).hex() for name in wildcards}
    subnames = {
        namehash(name).hex(): address for children in wildcards.values() for name, address in children.items()
    }

    def handler(params: List[Any]) -> str:
        tx = params[0]
        data = tx["data"]
        node = data[10:]
        if tx["to"] == ENS_REGISTRY and data.startswith(RESOLVER_SELECTOR):
            if node in nodes:
                return word(resolver_address)
            return word(extended_address) if node in parents else zero
        if data.startswith(SUPPORTS_INTERFACE_SELECTOR):
            supported = tx["to"] == extended_address and data[10:18] == RESOLVE_SELECTOR[2:]
            return "0x" + ("0" * 63) + ("1" if supported else "0")
        if tx["to"] == resolver_address and data.startswith(ADDR_SELECTOR):
            return word(nodes[node]) if node in nodes else zero
        if tx["to"] == extended_address and data.startswith(RESOLVE_SELECTOR):
            _, inner = decode(["bytes", "bytes"], bytes.fromhex(data[10:]))
            address = subnames.get(inner[4:].hex(), "0x" + "0" * 40)
            return "0x" + encode(["bytes"], [encode(["address"], [address])]).hex()
        return "0x"

    return handler


@pytest.fixture
def registry() -> ChainRegistry:
    return ChainRegistry()


@pytest.fixture
def node() -> FakeRpcClient:
    return FakeRpcClient()


@pytest.fixture
def clients(node: FakeRpcClient) -> ClientProvider:
    return single_client_provider(node)


@pytest.fixture
def resolver(registry: ChainRegistry, clients: ClientProvider) -> IdentifierResolver:
    return IdentifierResolver(registry, RegistryNameService(clients))
