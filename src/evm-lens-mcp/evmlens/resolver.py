import logging
import re
from typing import Dict, Optional, Tuple, Union

from ens.exceptions import ENSException, InvalidName
from ens.utils import dns_encode_name, normal_name_to_hash, normalize_name
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError

from .cache import ClientProvider
from .chains import ChainDescriptor, ChainRegistry
from .errors import InvalidIdentifier, NameNotFound, NameServiceError, RpcError, UnsupportedNetwork
from .models import ResolvedAddress

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
ENS_REGISTRY = "0x00000000000c2e074ec69a0dfb2997ba6c7d2e1e"
ENS_REGISTRIES: Dict[int, str] = {
    1: ENS_REGISTRY,
    11155111: ENS_REGISTRY,
    17000: ENS_REGISTRY,
}
RESOLVER_SELECTOR = "0x0178b8bf"  # resolver(bytes32)
ADDR_SELECTOR = "0x3b3b57de"  # addr(bytes32)
SUPPORTS_INTERFACE_SELECTOR = "0x01ffc9a7"  # supportsInterface(bytes4)
RESOLVE_SELECTOR = "0x9061b923"  # resolve(bytes,bytes), ENSIP-10
EXTENDED_RESOLVER_INTERFACE = RESOLVE_SELECTOR[2:]
ZERO_ADDRESS = "0x" + "0" * 40


def namehash(name: str) -> bytes:
    return bytes(normal_name_to_hash(name))


def _word_to_address(word: str) -> Optional[str]:
    body = (word or "0x")[2:]
    if len(body) < 64:
        return None
    address = "0x" + body[24:64].lower()
    if address == ZERO_ADDRESS:
        return None
    return address


def _parent(name: str) -> str:
    return name.split(".", 1)[1] if "." in name else ""


class RegistryNameService:
    """ENS lookups through registry/resolver eth_calls on the network's own node.

    Names without a resolver of their own are served by the closest ancestor's
    resolver when it implements the ENSIP-10 ``resolve(bytes,bytes)`` interface.
    Off-chain (CCIP-read) answers are not followed.
    """

    def __init__(self, clients: ClientProvider, registries: Optional[Dict[int, str]] = None) -> None:
        self._clients = clients
        self._registries = dict(ENS_REGISTRIES if registries is None else registries)

    def resolve_name(self, name: str, chain: ChainDescriptor) -> Optional[str]:
        registry = self._registries.get(chain.chain_id)
        if registry is None:
            raise UnsupportedNetwork(f"ENS names cannot be resolved on {chain.name}.")

        client = self._clients.get(chain)
        addr_call = ADDR_SELECTOR + namehash(name).hex()
        try:
            resolver, owner = self._find_resolver(client, registry, name)
            if resolver is None:
                return None
            extended = self._supports_extended(client, resolver)
            if owner != name and not extended:
                logger.debug("Resolver of %s does not serve subnames", owner)
                return None
            if not extended:
                return _word_to_address(client.eth_call(resolver, addr_call))
            return self._resolve_extended(client, resolver, name, addr_call)
        except RpcError as exc:
            raise NameServiceError(exc.upstream_message, status=exc.status) from exc

    def _find_resolver(self, client, registry: str, name: str) -> Tuple[Optional[str], str]:
        current = name
        while current:
            word = client.eth_call(registry, RESOLVER_SELECTOR + namehash(current).hex())
            resolver = _word_to_address(word)
            if resolver is not None:
                return resolver, current
            current = _parent(current)
        return None, current

    def _supports_extended(self, client, resolver: str) -> bool:
        data = SUPPORTS_INTERFACE_SELECTOR + EXTENDED_RESOLVER_INTERFACE + "0" * 56
        body = client.eth_call(resolver, data)[2:]
        return len(body) >= 64 and int(body[:64], 16) == 1

    def _resolve_extended(self, client, resolver: str, name: str, addr_call: str) -> Optional[str]:
        try:
            dns_name = bytes(dns_encode_name(name))
        except ENSException as exc:
            raise InvalidIdentifier(f"Malformed ENS name '{name}': {exc}") from exc
        args = abi_encode(["bytes", "bytes"], [dns_name, bytes.fromhex(addr_call[2:])])
        result = client.eth_call(resolver, RESOLVE_SELECTOR + args.hex())
        try:
            (answer,) = abi_decode(["bytes"], bytes.fromhex(result[2:]))
        except (DecodingError, ValueError) as exc:
            raise NameServiceError(f"Malformed resolve() answer from {resolver}: {exc}") from exc
        return _word_to_address("0x" + answer.hex())


class IdentifierResolver:
    def __init__(self, registry: ChainRegistry, name_service: RegistryNameService) -> None:
        self._registry = registry
        self._name_service = name_service

    def resolve(self, identifier: str, network: Union[str, int, ChainDescriptor]) -> ResolvedAddress:
        if not isinstance(identifier, str):
            raise InvalidIdentifier("Identifier must be a string.")
        candidate = identifier.strip()

        if ADDRESS_PATTERN.match(candidate):
            return ResolvedAddress(candidate.lower())

        if "." in candidate:
            try:
                normalized = normalize_name(candidate)
            except (InvalidName, ValueError) as exc:
                raise InvalidIdentifier(f"Malformed ENS name '{identifier}': {exc}") from exc
            if not normalized or any(not label for label in normalized.split(".")):
                raise InvalidIdentifier(f"Malformed ENS name '{identifier}'.")

            chain = self._registry.resolve(network)
            logger.debug("Resolving %s on %s", normalized, chain.label)
            address = self._name_service.resolve_name(normalized, chain)
            if address is None:
                raise NameNotFound(normalized)
            return ResolvedAddress(address, alias=normalized)

        raise InvalidIdentifier(
            f"Invalid address or ENS name: '{identifier}'. Expected 0x-prefixed 40 hex characters or a dotted name."
        )
