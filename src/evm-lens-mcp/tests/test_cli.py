import json

import pytest

from evmlens import cli


class StubService:
    def __init__(self, config):
        self.config = config

    def resolve(self, identifier, network):
        return {"address": identifier.lower(), "network": network}

    def decode(self, calldata, abi, network):
        return {"calldata": calldata, "abi": abi}

    def history(self, address, counterpart, network, categories):
        return {"address": address, "counterpart": counterpart, "categories": categories}

    def function_name_from_selector(self, selector, network):
        raise ValueError("bad selector")


@pytest.fixture(autouse=True)
def stub_service(monkeypatch):
    monkeypatch.setattr(cli, "EvmLensService", StubService)
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


def test_resolve_prints_json(capsys):
    cli.main(["resolve", "0xABC", "--network", "base"])
    assert json.loads(capsys.readouterr().out) == {"address": "0xabc", "network": "base"}


def test_history_repeatable_category(capsys):
    cli.main(["history", "alice.eth", "--counterpart", "bob.eth", "--category", "erc20", "--category", "external"])
    out = json.loads(capsys.readouterr().out)
    assert out["categories"] == ["erc20", "external"]
    assert out["counterpart"] == "bob.eth"


def test_decode_reads_abi_file(tmp_path, capsys):
    abi_file = tmp_path / "Token.json"
    abi_file.write_text(json.dumps({"abi": [{"type": "function", "name": "f", "inputs": []}]}))

    cli.main(["decode", "0x26121ff0", "--abi-file", str(abi_file)])

    assert json.loads(capsys.readouterr().out)["abi"][0]["name"] == "f"


def test_errors_go_to_stderr_with_exit_status(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["selector", "0xzz"])
    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Error: bad selector" in captured.err
