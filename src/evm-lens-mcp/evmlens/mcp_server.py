"""
MCP server exposing address resolution, call-data decoding and transfer history.
"""

import argparse
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .config import configure_logging, load_config
from .service import EvmLensService

logger = logging.getLogger(__name__)

server = FastMCP(
    name="evm-lens-mcp",
    instructions=(
        "Resolve ENS names, fetch verified contract metadata, decode transaction call data "
        "and aggregate transfer history for EVM chains."
    ),
)

_service: Optional[EvmLensService] = None


def _get_service() -> EvmLensService:
    global _service
    if _service is None:
        cfg = load_config()
        configure_logging(cfg.log_level)
        _service = EvmLensService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> Optional[list]:
    """
    Treat a parameter intended as an array as one:
    - a comma separated string is split
    - list/tuple: keep as list
    - Mapping: reject
    """
    if value is None:
        return None
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
        return items or None
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@server.tool(
    name="resolve_address",
    title="Resolve Address or ENS Name",
    description="Resolve a 0x address or ENS name (e.g. vitalik.eth) to a lower-case address.",
)
def resolve_address(identifier: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.resolve(identifier, network)


@server.tool(
    name="get_abi",
    title="Get Contract ABI",
    description="Fetch the verified ABI of a contract. Unverified contracts return verified=false.",
)
def get_abi(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.get_abi(address, network)


@server.tool(
    name="get_source",
    title="Get Contract Source",
    description="Fetch verified source code as a map of file name to content (or a single flattened file).",
)
def get_source(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.get_source(address, network)


@server.tool(
    name="get_contract_metadata",
    title="Get Contract Metadata",
    description="Contract name, compiler, proxy flag, ABI and source file list for a verified contract.",
)
def get_contract_metadata(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.get_contract_metadata(address, network)


@server.tool(
    name="is_contract",
    title="Check Contract Code",
    description="Report whether an address (or ENS name) has deployed bytecode.",
)
def is_contract(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.is_contract(address, network)


@server.tool(
    name="decode_call_data",
    title="Decode Call Data",
    description=(
        "Decode raw call data. Uses the given ABI when its selector matches (source=abi), "
        "otherwise the trace service's signature database (source=heuristic)."
    ),
)
def decode_call_data(
    calldata: str,
    abi: Optional[List[Dict[str, Any]]] = None,
    network: Optional[str] = None,
) -> dict:
    svc = _get_service()
    return svc.decode(calldata, abi, network)


@server.tool(
    name="decode_transaction",
    title="Decode Transaction Call Data",
    description="Fetch a transaction by hash and decode its input against the target's verified ABI.",
)
def decode_transaction(tx_hash: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.decode_for_transaction(tx_hash, network)


@server.tool(
    name="get_history",
    title="Get Transfer History",
    description=(
        "Sent and received transfers for an address, optionally only those with a counterpart, "
        "deduplicated and sorted newest first. categories: external, internal, erc20, erc721, erc1155."
    ),
)
def get_history(
    address: str,
    counterpart: Optional[str] = None,
    network: Optional[str] = None,
    categories: Optional[Any] = None,
) -> dict:
    svc = _get_service()
    return svc.history(address, counterpart, network, _normalize_array_param(categories, "categories"))


@server.tool(
    name="get_transactions_history",
    title="Get Transactions History",
    description="External and internal value transfers for an address, newest first.",
)
def get_transactions_history(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.transaction_history(address, network)


@server.tool(
    name="get_recent_transfers",
    title="Get Recent Transfers",
    description="External, ERC20, ERC721 and ERC1155 transfers for an address, newest first.",
)
def get_recent_transfers(address: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.recent_transfers(address, network)


@server.tool(
    name="get_transaction_trace",
    title="Get Transaction Trace",
    description="Full execution trace of a transaction from the trace service.",
)
def get_transaction_trace(tx_hash: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.trace(tx_hash, network)


@server.tool(
    name="get_function_name_args_from_calldata",
    title="Decode Selector and Arguments",
    description="Heuristic function name and arguments for call data, without a verified ABI.",
)
def get_function_name_args_from_calldata(calldata: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.decode_selector(calldata, network)


@server.tool(
    name="get_function_name_from_selector",
    title="Function Name From Selector",
    description="Look up the function name for a 4-byte selector (0x + 8 hex chars).",
)
def get_function_name_from_selector(selector: str, network: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.function_name_from_selector(selector, network)


@server.tool(
    name="list_networks",
    title="List Networks",
    description="Supported networks with chain id, aliases and which services are available on each.",
)
def list_networks() -> list:
    svc = _get_service()
    return svc.list_networks()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the EVM lens MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Host for SSE/HTTP transports.")
    parser.add_argument("--port", type=int, default=8000, help="Port for SSE/HTTP transports.")
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    server.settings.host = args.host
    server.settings.port = args.port

    logger.info("Starting MCP server over %s", args.transport)
    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
