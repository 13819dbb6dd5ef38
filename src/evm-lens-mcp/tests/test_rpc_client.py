import pytest
import requests

from evmlens.errors import RpcError
from evmlens.rpc_client import RpcClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = "reason"
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


def _client_with(monkeypatch, responses, **kwargs):
    client = RpcClient("https://rpc.example", **kwargs)
    sent = []

    def post(url, json=None, timeout=None):
        sent.append(json)
        item = responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    monkeypatch.setattr(client.session, "post", post)
    monkeypatch.setattr("evmlens.rpc_client.time.sleep", lambda _: None)
    return client, sent


def test_call_returns_result_and_numbers_requests(monkeypatch):
    client, sent = _client_with(
        monkeypatch,
        [FakeResponse(payload={"jsonrpc": "2.0", "id": 1, "result": "0x1"}),
         FakeResponse(payload={"jsonrpc": "2.0", "id": 2, "result": "0x2"})],
    )
    assert client.call("eth_blockNumber") == "0x1"
    assert client.call("eth_chainId", []) == "0x2"
    assert [payload["id"] for payload in sent] == [1, 2]
    assert sent[0]["params"] == []


def test_json_rpc_error_object(monkeypatch):
    client, _ = _client_with(
        monkeypatch,
        [FakeResponse(payload={"error": {"code": -32000, "message": "execution reverted", "data": "0x08c379a0"}})],
    )
    with pytest.raises(RpcError) as excinfo:
        client.call("eth_call", [{}])
    assert excinfo.value.status == -32000
    assert "execution reverted" in str(excinfo.value)


def test_timeout_is_reported_as_rpc_error(monkeypatch):
    client, _ = _client_with(monkeypatch, [requests.Timeout("slow")], timeout=3)
    with pytest.raises(RpcError) as excinfo:
        client.call("eth_blockNumber")
    assert excinfo.value.status == "timeout"


def test_server_errors_are_retried(monkeypatch):
    client, sent = _client_with(
        monkeypatch,
        [FakeResponse(status_code=502, text="bad gateway"), FakeResponse(payload={"result": "0x10"})],
        max_retries=2,
    )
    assert client.call("eth_blockNumber") == "0x10"
    assert len(sent) == 2


def test_client_errors_are_not_retried(monkeypatch):
    client, sent = _client_with(
        monkeypatch,
        [FakeResponse(status_code=401, text="unauthorized"), FakeResponse(payload={"result": "0x10"})],
        max_retries=3,
    )
    with pytest.raises(RpcError) as excinfo:
        client.call("eth_blockNumber")
    assert excinfo.value.status == 401
    assert len(sent) == 1


def test_invalid_json(monkeypatch):
    client, _ = _client_with(monkeypatch, [FakeResponse(invalid_json=True)])
    with pytest.raises(RpcError):
        client.call("eth_blockNumber")


def test_missing_result(monkeypatch):
    client, _ = _client_with(monkeypatch, [FakeResponse(payload={"jsonrpc": "2.0", "id": 1})])
    with pytest.raises(RpcError):
        client.call("eth_blockNumber")


def test_get_transaction_absent(monkeypatch):
    client, sent = _client_with(monkeypatch, [FakeResponse(payload={"result": None})])
    assert client.get_transaction("0x" + "ab" * 32) is None
    assert sent[0]["method"] == "eth_getTransactionByHash"


def test_rejects_bad_params():
    client = RpcClient("https://rpc.example")
    with pytest.raises(ValueError):
        client.call("eth_call", "0x")
    with pytest.raises(ValueError):
        RpcClient("  ")
