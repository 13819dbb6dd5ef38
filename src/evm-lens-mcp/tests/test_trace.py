import pytest

from evmlens.errors import (
    ConfigurationError,
    InvalidCallDataFormat,
    InvalidHashFormat,
    RpcError,
    TraceServiceError,
    UnsupportedNetwork,
)
from evmlens.models import AddressValue, UintValue, UnknownValue
from evmlens.trace import TransactionTraceClient, parse_decoded_input

TX_HASH = "0x" + "cd" * 32
CALLDATA = "0xa9059cbb" + "0" * 24 + "11" * 20 + format(1000, "064x")


@pytest.fixture
def trace_client(registry, node):
    urls = []

    def factory(url):
        urls.append(url)
        return node

    client = TransactionTraceClient(registry, "secret", factory=factory)
    client.urls = urls
    return client


def test_requires_api_key(registry):
    with pytest.raises(ConfigurationError):
        TransactionTraceClient(registry, None)


def test_trace_transaction(trace_client, node):
    node.responses["tenderly_traceTransaction"] = {"status": True, "trace": []}

    assert trace_client.trace(TX_HASH, "ethereum") == {"status": True, "trace": []}
    assert node.calls == [("tenderly_traceTransaction", [TX_HASH])]
    assert trace_client.urls == ["https://mainnet.gateway.tenderly.co/secret"]


def test_trace_rejects_bad_hash(trace_client, node):
    with pytest.raises(InvalidHashFormat):
        trace_client.trace("0x1234", "ethereum")
    assert node.calls == []


def test_trace_on_chain_without_service(trace_client):
    with pytest.raises(UnsupportedNetwork):
        trace_client.trace(TX_HASH, "fantom")


def test_service_errors_are_wrapped(trace_client, node):
    node.responses["tenderly_traceTransaction"] = RpcError("transaction not found", status=-32000)
    with pytest.raises(TraceServiceError) as excinfo:
        trace_client.trace(TX_HASH, "ethereum")
    assert excinfo.value.status == -32000


def test_decode_selector(trace_client, node):
    node.responses["tenderly_decodeInput"] = {
        "name": "transfer",
        "decodedArguments": [
            {"soltype": {"name": "dst", "type": "address"}, "value": "0x" + "11" * 20},
            {"soltype": {"name": "wad", "type": "uint256"}, "value": "1000"},
        ],
    }
    decoded = trace_client.decode_selector(CALLDATA, 1)

    assert decoded.name == "transfer"
    assert decoded.args == (AddressValue("address", "0x" + "11" * 20), UintValue("uint256", 1000))
    assert decoded.arg_names == ("dst", "wad")


def test_decode_selector_unknown_function(trace_client, node):
    node.responses["tenderly_decodeInput"] = None
    with pytest.raises(TraceServiceError):
        trace_client.decode_selector("0xdeadbeef", "ethereum")


def test_decode_selector_validates_calldata(trace_client):
    with pytest.raises(InvalidCallDataFormat):
        trace_client.decode_selector("0x12", "ethereum")


def test_function_name_from_selector(trace_client, node):
    node.responses["tenderly_decodeInput"] = {"name": "approve(address,uint256)"}

    assert trace_client.function_name("095EA7B3", "ethereum") == "approve"
    assert node.calls == [("tenderly_decodeInput", ["0x095ea7b3"])]


def test_function_name_from_full_calldata(trace_client, node):
    node.responses["tenderly_decodeInput"] = {"name": "transfer"}
    assert trace_client.function_name(CALLDATA, "ethereum") == "transfer"
    assert node.calls[0][1] == ["0xa9059cbb"]


def test_parse_decoded_input_variants():
    assert parse_decoded_input(None) is None
    assert parse_decoded_input({"args": []}) is None

    decoded = parse_decoded_input(
        {"functionName": "swap", "args": [{"name": "flag", "type": "weird9", "value": 1}, "raw"]}
    )
    assert decoded.name == "swap"
    assert decoded.args == (UnknownValue("weird9", 1), UnknownValue("", "raw"))
    assert decoded.arg_names == ("flag", None)
