import pytest

from conftest import FakeRpcClient, ens_eth_call, single_client_provider
from evmlens.errors import InvalidIdentifier, NameNotFound, NameServiceError, RpcError, UnsupportedNetwork
from evmlens.resolver import (
    ADDR_SELECTOR,
    RESOLVE_SELECTOR,
    RESOLVER_SELECTOR,
    SUPPORTS_INTERFACE_SELECTOR,
    IdentifierResolver,
    RegistryNameService,
    namehash,
)

VITALIK = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


def test_namehash_of_known_names():
    assert namehash("").hex() == "00" * 32
    assert namehash("eth").hex() == "93cdeb708b7545dc668eb9280176169d1c33cfd8ed6f04690a0bcc88a93fc4ae"
    assert namehash("vitalik.eth").hex() == "ee6c4522aab0003e8d14cd40a6af439055fd2577951148c14b6cea9a53475835"


def test_address_passes_through_without_network_call(resolver, node):
    resolved = resolver.resolve("0xD8DA6BF26964AF9D7EED9E03E53415D37AA96045", "ethereum")
    assert resolved.address == VITALIK
    assert resolved.alias is None
    assert node.calls == []


def test_address_on_chain_without_name_service(resolver):
    assert resolver.resolve(VITALIK, "base").address == VITALIK


@pytest.mark.parametrize("identifier", ["vitalik", "0x1234", "", "   ", "0xzz" + "0" * 38])
def test_not_an_address_or_name(resolver, identifier):
    with pytest.raises(InvalidIdentifier):
        resolver.resolve(identifier, "ethereum")


def test_non_string_identifier(resolver):
    with pytest.raises(InvalidIdentifier):
        resolver.resolve(12345, "ethereum")


def test_ens_name_is_resolved_through_registry(resolver, node):
    node.responses["eth_call"] = ens_eth_call({"vitalik.eth": VITALIK})

    resolved = resolver.resolve("vitalik.eth", "ethereum")

    assert resolved.address == VITALIK
    assert resolved.alias == "vitalik.eth"
    assert [method for method, _ in node.calls] == ["eth_call", "eth_call", "eth_call"]


def test_ens_name_is_normalized(resolver, node):
    node.responses["eth_call"] = ens_eth_call({"vitalik.eth": VITALIK})
    assert resolver.resolve("  Vitalik.ETH ", 1).alias == "vitalik.eth"


def test_unregistered_name(resolver, node):
    node.responses["eth_call"] = ens_eth_call({})
    with pytest.raises(NameNotFound) as excinfo:
        resolver.resolve("nobody-owns-this.eth", "ethereum")
    assert excinfo.value.name == "nobody-owns-this.eth"


def test_resolver_without_addr_record(registry):
    resolver_address = "0x" + "4" * 40

    def handler(params):
        if params[0]["to"] == resolver_address:
            return "0x" + "0" * 64
        return "0x" + "0" * 24 + resolver_address[2:]

    node = FakeRpcClient({"eth_call": handler})
    resolver = IdentifierResolver(registry, RegistryNameService(single_client_provider(node)))
    with pytest.raises(NameNotFound):
        resolver.resolve("empty.eth", "ethereum")


def test_subname_served_by_parent_extended_resolver(resolver, node):
    node.responses["eth_call"] = ens_eth_call({}, wildcards={"cb.id": {"alice.cb.id": VITALIK}})

    resolved = resolver.resolve("alice.cb.id", "ethereum")

    assert resolved.address == VITALIK
    assert resolved.alias == "alice.cb.id"
    targets = [params[0]["data"][:10] for _, params in node.calls]
    assert targets == [RESOLVER_SELECTOR, RESOLVER_SELECTOR, SUPPORTS_INTERFACE_SELECTOR, RESOLVE_SELECTOR]


def test_unknown_subname_under_extended_resolver(resolver, node):
    node.responses["eth_call"] = ens_eth_call({}, wildcards={"cb.id": {"alice.cb.id": VITALIK}})
    with pytest.raises(NameNotFound):
        resolver.resolve("bob.cb.id", "ethereum")


def test_parent_resolver_without_extended_interface_does_not_serve_subnames(resolver, node):
    node.responses["eth_call"] = ens_eth_call({"vitalik.eth": VITALIK})
    with pytest.raises(NameNotFound):
        resolver.resolve("wallet.vitalik.eth", "ethereum")
    assert not any(params[0]["data"].startswith(ADDR_SELECTOR) for _, params in node.calls)


def test_name_on_chain_without_registry(resolver, node):
    with pytest.raises(UnsupportedNetwork):
        resolver.resolve("vitalik.eth", "base")
    assert node.calls == []


def test_name_service_failure(resolver, node):
    node.responses["eth_call"] = RpcError("upstream down", status=503)
    with pytest.raises(NameServiceError) as excinfo:
        resolver.resolve("vitalik.eth", "ethereum")
    assert excinfo.value.status == 503


@pytest.mark.parametrize("identifier", ["foo..eth", ".eth"])
def test_malformed_names(resolver, identifier):
    with pytest.raises(InvalidIdentifier):
        resolver.resolve(identifier, "ethereum")


def test_resolved_address_helpers(resolver):
    resolved = resolver.resolve(VITALIK, "ethereum")
    assert resolved.checksum == "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
    assert len(resolved.raw) == 20
    assert str(resolved) == VITALIK
