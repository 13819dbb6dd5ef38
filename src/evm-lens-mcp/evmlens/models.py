from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from eth_utils import to_checksum_address


@dataclass(frozen=True)
class ResolvedAddress:
    address: str
    alias: Optional[str] = None

    @property
    def raw(self) -> bytes:
        return bytes.fromhex(self.address[2:])

    @property
    def checksum(self) -> str:
        return to_checksum_address(self.address)

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class MetadataAbsent:
    """Explicit "no verified metadata" outcome for an address."""

    address: str
    chain_id: int
    reason: str = "Contract source code not verified"

    def __bool__(self) -> bool:
        return False


SourceBundle = Union[Dict[str, str], str]


@dataclass(frozen=True)
class ContractMetadata:
    address: str
    chain_id: int
    abi: List[Dict[str, Any]]
    source: SourceBundle
    contract_name: str = ""
    compiler: str = ""
    proxy: bool = False
    implementation: Optional[str] = None


# Tagged ABI values. Every variant carries the ABI type string it was decoded as.


@dataclass(frozen=True)
class AddressValue:
    kind: ClassVar[str] = "address"
    abi_type: str
    value: str

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class UintValue:
    kind: ClassVar[str] = "uint"
    abi_type: str
    value: int

    def to_json(self) -> Any:
        return str(self.value)


@dataclass(frozen=True)
class IntValue:
    kind: ClassVar[str] = "int"
    abi_type: str
    value: int

    def to_json(self) -> Any:
        return str(self.value)


@dataclass(frozen=True)
class BoolValue:
    kind: ClassVar[str] = "bool"
    abi_type: str
    value: bool

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class BytesValue:
    kind: ClassVar[str] = "bytes"
    abi_type: str
    value: bytes

    def to_json(self) -> Any:
        return "0x" + self.value.hex()


@dataclass(frozen=True)
class FixedBytesValue:
    kind: ClassVar[str] = "fixed_bytes"
    abi_type: str
    value: bytes

    def to_json(self) -> Any:
        return "0x" + self.value.hex()


@dataclass(frozen=True)
class StringValue:
    kind: ClassVar[str] = "string"
    abi_type: str
    value: str

    def to_json(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ArrayValue:
    kind: ClassVar[str] = "array"
    abi_type: str
    items: Tuple["AbiValue", ...]

    def to_json(self) -> Any:
        return [item.to_json() for item in self.items]


@dataclass(frozen=True)
class TupleValue:
    kind: ClassVar[str] = "tuple"
    abi_type: str
    items: Tuple["AbiValue", ...]
    names: Tuple[Optional[str], ...] = ()

    def to_json(self) -> Any:
        if self.names and all(self.names):
            return {name: item.to_json() for name, item in zip(self.names, self.items)}
        return [item.to_json() for item in self.items]


@dataclass(frozen=True)
class UnknownValue:
    """A heuristic argument whose type could not be interpreted."""

    kind: ClassVar[str] = "unknown"
    abi_type: str
    value: Any

    def to_json(self) -> Any:
        return self.value


AbiValue = Union[
    AddressValue,
    UintValue,
    IntValue,
    BoolValue,
    BytesValue,
    FixedBytesValue,
    StringValue,
    ArrayValue,
    TupleValue,
    UnknownValue,
]


class DecodeSource(str, Enum):
    ABI = "abi"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class DecodedCall:
    function_name: str
    args: Tuple[AbiValue, ...]
    source: DecodeSource
    selector: str
    signature: Optional[str] = None
    arg_names: Tuple[Optional[str], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        arguments = []
        for idx, value in enumerate(self.args):
            name = self.arg_names[idx] if idx < len(self.arg_names) else None
            arguments.append(
                {
                    "name": name,
                    "type": value.abi_type,
                    "kind": value.kind,
                    "value": value.to_json(),
                }
            )
        return {
            "function_name": self.function_name,
            "signature": self.signature,
            "selector": self.selector,
            "source": self.source.value,
            "args": arguments,
        }


class TransferCategory(str, Enum):
    EXTERNAL = "external"
    INTERNAL = "internal"
    ERC20 = "erc20"
    ERC721 = "erc721"
    ERC1155 = "erc1155"
    SPECIALNFT = "specialnft"


ALL_CATEGORIES: Tuple[TransferCategory, ...] = (
    TransferCategory.EXTERNAL,
    TransferCategory.INTERNAL,
    TransferCategory.ERC20,
    TransferCategory.ERC721,
    TransferCategory.ERC1155,
)


@dataclass(frozen=True)
class HistoryQuery:
    subject: ResolvedAddress
    counterpart: Optional[ResolvedAddress] = None
    categories: Tuple[TransferCategory, ...] = ALL_CATEGORIES


@dataclass(frozen=True)
class TransferRecord:
    tx_hash: Optional[str]
    unique_id: Optional[str]
    sub_index: Optional[str]
    from_address: Optional[str]
    to_address: Optional[str]
    asset_contract: Optional[str]
    asset_symbol: Optional[str]
    category: Optional[str]
    value: Optional[int]
    token_id: Optional[str] = None
    block_number: Optional[int] = None
    timestamp: Optional[datetime] = None
    decimals: Optional[int] = None

    @property
    def identity(self) -> Tuple[Any, ...]:
        return (
            self.tx_hash,
            self.sub_index,
            self.asset_contract,
            self.token_id,
            self.from_address,
            self.to_address,
            self.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "unique_id": self.unique_id,
            "from": self.from_address,
            "to": self.to_address,
            "category": self.category,
            "asset": self.asset_symbol,
            "asset_contract": self.asset_contract,
            "value": str(self.value) if self.value is not None else None,
            "decimals": self.decimals,
            "token_id": self.token_id,
            "block_number": self.block_number,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class HeuristicDecode:
    name: str
    args: Tuple[AbiValue, ...]
    arg_names: Tuple[Optional[str], ...] = ()
    signature: Optional[str] = None
