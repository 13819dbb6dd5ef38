import argparse
import json
import sys
from typing import Optional

from .config import configure_logging, load_config
from .service import EvmLensService

NETWORK_HELP = "Optional network name or chain id. Defaults to NETWORK env or ethereum."


def _add_network(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--network", required=False, help=NETWORK_HELP)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve addresses, decode call data and list transfers on EVM chains.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an address or ENS name")
    resolve_parser.add_argument("identifier", help="0x-prefixed address or ENS name.")
    _add_network(resolve_parser)

    abi_parser = subparsers.add_parser("abi", help="Fetch a verified contract ABI")
    abi_parser.add_argument("address", help="Contract address or ENS name.")
    _add_network(abi_parser)

    source_parser = subparsers.add_parser("source", help="Fetch verified contract source")
    source_parser.add_argument("address", help="Contract address or ENS name.")
    _add_network(source_parser)

    decode_parser = subparsers.add_parser("decode", help="Decode raw call data")
    decode_parser.add_argument("calldata", help="0x-prefixed call data.")
    decode_parser.add_argument(
        "--abi-file",
        required=False,
        help="Path to a JSON ABI to decode against. Without it the heuristic service is used.",
    )
    _add_network(decode_parser)

    tx_parser = subparsers.add_parser("decode-tx", help="Decode the call data of a transaction")
    tx_parser.add_argument("tx_hash", help="0x-prefixed 32-byte transaction hash.")
    _add_network(tx_parser)

    history_parser = subparsers.add_parser("history", help="List transfers sent and received by an address")
    history_parser.add_argument("address", help="Address or ENS name.")
    history_parser.add_argument(
        "--counterpart",
        required=False,
        help="Only transfers between the address and this counterpart.",
    )
    history_parser.add_argument(
        "--category",
        action="append",
        dest="categories",
        help="Transfer category (external, internal, erc20, erc721, erc1155). Repeatable.",
    )
    _add_network(history_parser)

    trace_parser = subparsers.add_parser("trace", help="Fetch the execution trace of a transaction")
    trace_parser.add_argument("tx_hash", help="0x-prefixed 32-byte transaction hash.")
    _add_network(trace_parser)

    selector_parser = subparsers.add_parser("selector", help="Look up a function name by 4-byte selector")
    selector_parser.add_argument("selector", help="0x + 8 hex characters.")
    _add_network(selector_parser)

    return parser


def _load_abi(path: Optional[str]) -> Optional[list]:
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    # Accept either a bare ABI list or a compiler artifact with an "abi" key.
    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain an ABI array.")
    return data


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        configure_logging(config.log_level)
        service = EvmLensService(config)

        if args.command == "resolve":
            result = service.resolve(args.identifier, args.network)
        elif args.command == "abi":
            result = service.get_abi(args.address, args.network)
        elif args.command == "source":
            result = service.get_source(args.address, args.network)
        elif args.command == "decode":
            result = service.decode(args.calldata, _load_abi(args.abi_file), args.network)
        elif args.command == "decode-tx":
            result = service.decode_for_transaction(args.tx_hash, args.network)
        elif args.command == "history":
            result = service.history(args.address, args.counterpart, args.network, args.categories)
        elif args.command == "trace":
            result = service.trace(args.tx_hash, args.network)
        else:
            result = service.function_name_from_selector(args.selector, args.network)
        print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
