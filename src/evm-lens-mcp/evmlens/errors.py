from typing import Any, List, Optional


class EvmLensError(Exception):
    """Base class for every error raised by evmlens."""


class ConfigurationError(EvmLensError, ValueError):
    pass


class UnsupportedNetwork(EvmLensError, ValueError):
    pass


class InvalidIdentifier(EvmLensError, ValueError):
    pass


class InvalidHashFormat(EvmLensError, ValueError):
    pass


class InvalidCallDataFormat(EvmLensError, ValueError):
    pass


class NameNotFound(EvmLensError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Name '{name}' could not be resolved to an address.")
        self.name = name


class TransactionNotFound(EvmLensError):
    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} not found.")
        self.tx_hash = tx_hash


class UpstreamServiceError(EvmLensError):
    """A remote service failed, timed out, or answered with an error payload."""

    service = "upstream"

    def __init__(
        self,
        upstream_message: str,
        status: Optional[Any] = None,
    ) -> None:
        self.upstream_message = upstream_message
        self.status = status
        detail = f"{self.service} error"
        if status is not None:
            detail += f" ({status})"
        super().__init__(f"{detail}: {upstream_message}")


class RpcError(UpstreamServiceError):
    service = "RPC"


class NameServiceError(UpstreamServiceError):
    service = "Name service"


class MetadataFetchFailed(UpstreamServiceError):
    service = "Etherscan"


class TraceServiceError(UpstreamServiceError):
    service = "Trace service"


class IndexServiceError(UpstreamServiceError):
    service = "Index service"


class DecodeExhausted(EvmLensError):
    def __init__(self, selector: str, cause: Optional[BaseException] = None) -> None:
        message = f"Unable to decode call data with selector {selector}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.selector = selector
        self.cause = cause


class PartialHistoryResult(EvmLensError):
    """One history direction failed; `records` holds the processed other half."""

    def __init__(self, failed_direction: str, records: List[Any], cause: BaseException) -> None:
        super().__init__(
            f"Transfer history is incomplete: the '{failed_direction}' query failed ({cause})."
        )
        self.failed_direction = failed_direction
        self.records = records
        self.cause = cause
