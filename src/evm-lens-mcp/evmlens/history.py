"""
Transfer history aggregation.

The indexer is queried twice, once with the subject as sender and once as
recipient. Both result sets are merged, flattened into TransferRecord,
deduplicated on the record identity tuple and sorted newest first. Records
without a timestamp sort last so they are never mistaken for recent activity.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .alchemy_client import AlchemyClient
from .chains import ChainDescriptor, ChainRegistry
from .errors import IndexServiceError, PartialHistoryResult, UnsupportedNetwork
from .models import ALL_CATEGORIES, HistoryQuery, ResolvedAddress, TransferCategory, TransferRecord
from .resolver import IdentifierResolver

logger = logging.getLogger(__name__)

FROM_DIRECTION = "from"
TO_DIRECTION = "to"
EPOCH = datetime.min.replace(tzinfo=timezone.utc)

TRANSACTION_CATEGORIES = (TransferCategory.EXTERNAL, TransferCategory.INTERNAL)
TOKEN_TRANSFER_CATEGORIES = (
    TransferCategory.EXTERNAL,
    TransferCategory.ERC20,
    TransferCategory.ERC721,
    TransferCategory.ERC1155,
)

Network = Union[str, int, ChainDescriptor]
Identifier = Union[str, ResolvedAddress]


def _hex_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            return None
    return None


def _lower(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value.lower()
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _token_id(raw: Dict[str, Any]) -> Optional[str]:
    token_id = raw.get("tokenId") or raw.get("erc721TokenId")
    if token_id:
        return str(token_id)
    erc1155 = raw.get("erc1155Metadata")
    if isinstance(erc1155, list) and erc1155:
        ids = [str(item.get("tokenId")) for item in erc1155 if isinstance(item, dict) and item.get("tokenId")]
        if ids:
            return ",".join(ids)
    return None


def flatten_transfer(raw: Dict[str, Any]) -> TransferRecord:
    """Project one indexer item into a TransferRecord. Missing values become None, never "" or 0."""
    raw_contract = raw.get("rawContract") if isinstance(raw.get("rawContract"), dict) else {}
    metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}

    unique_id = raw.get("uniqueId") if isinstance(raw.get("uniqueId"), str) else None
    sub_index = unique_id.split(":", 1)[1] if unique_id and ":" in unique_id else None

    return TransferRecord(
        tx_hash=_lower(raw.get("hash")),
        unique_id=unique_id,
        sub_index=sub_index,
        from_address=_lower(raw.get("from")),
        to_address=_lower(raw.get("to")),
        asset_contract=_lower(raw_contract.get("address")),
        asset_symbol=raw.get("asset") or None,
        category=raw.get("category") or None,
        value=_hex_int(raw_contract.get("value")),
        token_id=_token_id(raw),
        block_number=_hex_int(raw.get("blockNum")),
        timestamp=parse_timestamp(metadata.get("blockTimestamp")),
        decimals=_hex_int(raw_contract.get("decimal")),
    )


def deduplicate(records: Iterable[TransferRecord]) -> List[TransferRecord]:
    seen = set()
    unique: List[TransferRecord] = []
    for record in records:
        key = record.identity
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def sort_newest_first(records: Sequence[TransferRecord]) -> List[TransferRecord]:
    # sorted() keeps ties in source order even with reverse=True.
    return sorted(
        records,
        key=lambda record: (record.timestamp is not None, record.timestamp or EPOCH),
        reverse=True,
    )


def merge_directions(*batches: Sequence[Dict[str, Any]]) -> List[TransferRecord]:
    merged: List[Dict[str, Any]] = []
    for batch in batches:
        merged.extend(batch)
    records = [flatten_transfer(item) for item in merged if isinstance(item, dict)]
    return sort_newest_first(deduplicate(records))


class TransferHistoryAggregator:
    def __init__(
        self,
        registry: ChainRegistry,
        resolver: IdentifierResolver,
        indexer: AlchemyClient,
        max_pages: int = 5,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._indexer = indexer
        self._max_pages = max(1, int(max_pages))

    def history(
        self,
        subject: Identifier,
        counterpart: Optional[Identifier] = None,
        network: Network = "ethereum",
        categories: Optional[Iterable[Union[str, TransferCategory]]] = None,
    ) -> List[TransferRecord]:
        chain = self._registry.resolve(network)
        if not chain.indexer_url:
            raise UnsupportedNetwork(f"No asset-indexing service is configured for {chain.name}.")

        query = HistoryQuery(
            subject=self._resolve(subject, chain),
            counterpart=self._resolve(counterpart, chain) if counterpart is not None else None,
            categories=self._categories(categories, chain),
        )
        sent, received = self._fetch_both(query, chain)
        return merge_directions(sent, received)

    def transaction_history(self, address: Identifier, network: Network = "ethereum") -> List[TransferRecord]:
        return self.history(address, None, network, TRANSACTION_CATEGORIES)

    def recent_transfers(self, address: Identifier, network: Network = "ethereum") -> List[TransferRecord]:
        return self.history(address, None, network, TOKEN_TRANSFER_CATEGORIES)

    def _resolve(self, identifier: Identifier, chain: ChainDescriptor) -> ResolvedAddress:
        if isinstance(identifier, ResolvedAddress):
            return identifier
        return self._resolver.resolve(identifier, chain)

    def _categories(
        self,
        categories: Optional[Iterable[Union[str, TransferCategory]]],
        chain: ChainDescriptor,
    ) -> Tuple[TransferCategory, ...]:
        requested = ALL_CATEGORIES if categories is None else tuple(
            TransferCategory(str(getattr(cat, "value", cat)).lower()) for cat in categories
        )
        if not requested:
            raise ValueError("At least one transfer category is required.")
        if TransferCategory.INTERNAL in requested and not chain.supports_internal_transfers:
            logger.warning("Internal transfers are not indexed on %s; dropping that category", chain.name)
            requested = tuple(cat for cat in requested if cat is not TransferCategory.INTERNAL)
            if not requested:
                raise UnsupportedNetwork(f"Internal transfers are not indexed on {chain.name}.")
        # Order-preserving dedup of the requested categories.
        return tuple(dict.fromkeys(requested))

    def _params(self, query: HistoryQuery, direction: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "fromBlock": "0x0",
            "toBlock": "latest",
            "category": [cat.value for cat in query.categories],
            "order": "desc",
            "withMetadata": True,
            "excludeZeroValue": False,
        }
        if direction == FROM_DIRECTION:
            params["fromAddress"] = query.subject.address
            if query.counterpart is not None:
                params["toAddress"] = query.counterpart.address
        else:
            params["toAddress"] = query.subject.address
            if query.counterpart is not None:
                params["fromAddress"] = query.counterpart.address
        return params

    def _fetch_direction(
        self,
        query: HistoryQuery,
        chain: ChainDescriptor,
        direction: str,
        cancelled: threading.Event,
    ) -> List[Dict[str, Any]]:
        params = self._params(query, direction)
        transfers: List[Dict[str, Any]] = []
        for page in range(self._max_pages):
            if page and cancelled.is_set():
                logger.info("History %s query for %s stopped after %d pages", direction, query.subject, page)
                break
            try:
                result = self._indexer.get_asset_transfers(chain, params)
            except IndexServiceError:
                # The other direction stops paging once this one has failed.
                cancelled.set()
                raise
            transfers.extend(result.get("transfers") or [])
            page_key = result.get("pageKey")
            if not page_key:
                break
            if page + 1 == self._max_pages:
                logger.info("History %s query for %s truncated after %d pages", direction, query.subject, self._max_pages)
                break
            params = {**params, "pageKey": page_key}
        logger.debug("History %s query for %s returned %d items", direction, query.subject, len(transfers))
        return transfers

    def _fetch_both(
        self, query: HistoryQuery, chain: ChainDescriptor
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        cancelled = threading.Event()
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="evmlens-history")
        results: Dict[str, List[Dict[str, Any]]] = {}
        errors: Dict[str, IndexServiceError] = {}
        try:
            futures = {
                direction: executor.submit(self._fetch_direction, query, chain, direction, cancelled)
                for direction in (FROM_DIRECTION, TO_DIRECTION)
            }
            for direction, future in futures.items():
                try:
                    results[direction] = future.result()
                except IndexServiceError as exc:
                    errors[direction] = exc
        finally:
            cancelled.set()
            executor.shutdown(wait=False, cancel_futures=True)

        if len(errors) == 2:
            raise errors[FROM_DIRECTION]
        if errors:
            failed, cause = next(iter(errors.items()))
            surviving = results[TO_DIRECTION if failed == FROM_DIRECTION else FROM_DIRECTION]
            raise PartialHistoryResult(failed, merge_directions(surviving), cause) from cause
        return results[FROM_DIRECTION], results[TO_DIRECTION]
