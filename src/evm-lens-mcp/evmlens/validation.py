import re
from typing import Union

from .errors import InvalidCallDataFormat, InvalidHashFormat

TX_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")
HEX_BODY_PATTERN = re.compile(r"^[0-9a-f]*$")


def normalize_tx_hash(tx_hash: str) -> str:
    if not isinstance(tx_hash, str):
        raise InvalidHashFormat("tx_hash must be a string.")
    candidate = tx_hash.strip().lower()
    if not TX_HASH_PATTERN.match(candidate):
        raise InvalidHashFormat("tx_hash must be 0x-prefixed 64 hex characters.")
    return candidate


def normalize_calldata(calldata: Union[str, bytes, bytearray], min_bytes: int = 4) -> str:
    """Return call data as lower-case 0x-prefixed hex with at least a 4-byte selector."""
    if isinstance(calldata, (bytes, bytearray)):
        candidate = "0x" + bytes(calldata).hex()
    elif isinstance(calldata, str):
        candidate = calldata.strip().lower()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"
    else:
        raise InvalidCallDataFormat("calldata must be a hex string or bytes.")

    body = candidate[2:]
    if not HEX_BODY_PATTERN.match(body) or len(body) % 2 != 0:
        raise InvalidCallDataFormat("calldata must be an even-length hex string.")
    if len(body) < min_bytes * 2:
        raise InvalidCallDataFormat(f"calldata must include at least {min_bytes} bytes (the function selector).")
    return candidate
