"""
ABI helpers shared by the local and heuristic decoders.

Values are converted into the tagged variants of `evmlens.models` by walking
the ABI type tree alongside the decoded data, so every argument keeps the
exact type it was decoded as.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from eth_utils import keccak

from .models import (
    AbiValue,
    AddressValue,
    ArrayValue,
    BoolValue,
    BytesValue,
    FixedBytesValue,
    IntValue,
    StringValue,
    TupleValue,
    UintValue,
    UnknownValue,
)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
HEX_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]*$")


def canonical_type(param: Mapping[str, Any]) -> str:
    """Expand `tuple` types into `(t1,t2,...)` form, keeping array suffixes."""
    typ = str(param.get("type", "")).strip()
    if not typ.startswith("tuple"):
        return typ
    suffix = typ[len("tuple"):]
    components = param.get("components") or []
    inner = ",".join(canonical_type(comp) for comp in components)
    return f"({inner}){suffix}"


def decode_type(param: Mapping[str, Any]) -> str:
    """Like `canonical_type`, with `string` read as `bytes` so invalid UTF-8 still decodes."""
    typ = str(param.get("type", "")).strip()
    if typ.startswith("tuple"):
        components = param.get("components") or []
        suffix = typ[len("tuple"):]
        inner = ",".join(decode_type(comp) for comp in components)
        return f"({inner}){suffix}"
    if typ == "string" or typ.startswith("string["):
        return "bytes" + typ[len("string"):]
    return typ


def function_signature(entry: Mapping[str, Any]) -> str:
    inputs = entry.get("inputs") or []
    return f"{entry.get('name', '')}({','.join(canonical_type(inp) for inp in inputs)})"


def selector_for(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def function_selectors(abi: Sequence[Any]) -> Dict[str, Dict[str, Any]]:
    """Map 0x-prefixed selector -> ABI function entry; malformed entries are skipped."""
    selectors: Dict[str, Dict[str, Any]] = {}
    for entry in abi:
        if not isinstance(entry, dict) or entry.get("type", "function") != "function":
            continue
        name = entry.get("name")
        inputs = entry.get("inputs", [])
        if not name or not isinstance(inputs, list):
            continue
        if not all(isinstance(inp, dict) and isinstance(inp.get("type"), str) for inp in inputs):
            continue
        selectors.setdefault(selector_for(function_signature(entry)), entry)
    return selectors


def _element_param(param: Mapping[str, Any]) -> Dict[str, Any]:
    typ = str(param.get("type", ""))
    return {"type": typ[: typ.rfind("[")], "components": param.get("components") or []}


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith(("0x", "-0x")):
                return int(text, 16)
            return int(text)
        except ValueError:
            return None
    return None


def _bytes_or_none(value: Any) -> Optional[bytes]:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and HEX_PATTERN.match(value.strip()):
        body = value.strip()
        body = body[2:] if body.lower().startswith("0x") else body
        if len(body) % 2:
            body = "0" + body
        return bytes.fromhex(body)
    return None


def tag_value(param: Mapping[str, Any], value: Any) -> AbiValue:
    """Wrap a value decoded by eth_abi (or reported by a remote decoder) into its tagged variant."""
    typ = str(param.get("type", "")).strip()
    components: List[Mapping[str, Any]] = list(param.get("components") or [])

    if typ.endswith("]"):
        if not isinstance(value, (list, tuple)):
            return UnknownValue(typ, value)
        element = _element_param(param)
        return ArrayValue(canonical_type(param), tuple(tag_value(element, item) for item in value))

    if typ == "tuple":
        names = tuple(comp.get("name") or None for comp in components)
        if isinstance(value, Mapping):
            if not components:
                return TupleValue(
                    "tuple",
                    tuple(tag_value({"type": ""}, item) for item in value.values()),
                    tuple(value.keys()),
                )
            value = [value.get(comp.get("name")) for comp in components]
        if not isinstance(value, (list, tuple)):
            return UnknownValue(typ, value)
        if components and len(components) != len(value):
            return UnknownValue(canonical_type(param), list(value))
        if not components:
            return TupleValue("tuple", tuple(tag_value({"type": ""}, item) for item in value))
        items = tuple(tag_value(comp, item) for comp, item in zip(components, value))
        return TupleValue(canonical_type(param), items, names)

    if typ == "address":
        if isinstance(value, str) and ADDRESS_PATTERN.match(value.strip()):
            return AddressValue(typ, value.strip().lower())
        return UnknownValue(typ, value)

    if typ.startswith("uint") or typ.startswith("int"):
        number = _int_or_none(value)
        if number is None:
            return UnknownValue(typ, value)
        if typ.startswith("uint"):
            return UintValue(typ, number)
        return IntValue(typ, number)

    if typ == "bool":
        if isinstance(value, bool):
            return BoolValue(typ, value)
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return BoolValue(typ, value.strip().lower() == "true")
        if isinstance(value, int):
            return BoolValue(typ, bool(value))
        return UnknownValue(typ, value)

    if typ == "string":
        if isinstance(value, (bytes, bytearray)):
            return StringValue(typ, bytes(value).decode("utf-8", errors="replace"))
        return StringValue(typ, str(value))

    if typ == "bytes" or re.fullmatch(r"bytes([1-9]|[12][0-9]|3[0-2])", typ):
        data = _bytes_or_none(value)
        if data is None:
            return UnknownValue(typ, value)
        if typ == "bytes":
            return BytesValue(typ, data)
        return FixedBytesValue(typ, data)

    return UnknownValue(typ, value if isinstance(value, (str, int, float, bool, type(None))) else repr(value))
