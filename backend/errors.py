"""
Exception taxonomy for the ledger access layer.

Read paths turn these into ReadResult values or empty results; write paths
let them propagate so the caller can tell a declined signature from a
rejected transaction from an unreachable node.
"""

from typing import Any


class BallotChainError(Exception):
    """Base class. ``recoverable`` marks errors a caller may retry from scratch."""

    kind = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None, recoverable: bool = False):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ConfigurationError(BallotChainError):
    kind = "configuration"

    def __init__(self, message: str, config_key: str | None = None):
        super().__init__(message, details={"config_key": config_key} if config_key else None)


class ValidationError(BallotChainError):
    kind = "validation"

    def __init__(self, message: str, field_name: str | None = None):
        super().__init__(message, details={"field_name": field_name} if field_name else None)


class NetworkError(BallotChainError):
    """Node unreachable or too slow. Safe to retry the whole operation."""

    kind = "network"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, details={"operation": operation} if operation else None, recoverable=True)


class ChainTimeoutError(NetworkError):
    kind = "timeout"


class ConfirmationTimeoutError(NetworkError):
    kind = "confirmation_timeout"

    def __init__(self, message: str, tx_id: str):
        super().__init__(message, operation="await_confirmation")
        self.details["tx_id"] = tx_id
        self.tx_id = tx_id


class ContractRevertError(BallotChainError):
    """Business-rule rejection by the contract; surfaced verbatim, never retried."""

    kind = "revert"

    def __init__(self, message: str, method: str | None = None, tx_id: str | None = None):
        details = {}
        if method:
            details["method"] = method
        if tx_id:
            details["tx_id"] = tx_id
        super().__init__(message, details=details)
        self.method = method
        self.tx_id = tx_id


class UserDeclinedError(BallotChainError):
    kind = "user_declined"

    def __init__(self, message: str = "Signer authorization was declined"):
        super().__init__(message)


class DecodeError(BallotChainError):
    kind = "decode"

    def __init__(self, message: str, method: str | None = None):
        super().__init__(message, details={"method": method} if method else None)


class EventQueryUnsupportedError(BallotChainError):
    kind = "events_unsupported"

    def __init__(self, message: str = "Event log queries require an indexer"):
        super().__init__(message)


class CachePersistenceError(BallotChainError):
    kind = "cache"

    def __init__(self, message: str, key: str | None = None, operation: str | None = None):
        details = {}
        if key:
            details["key"] = key
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details, recoverable=True)


class DeadlineExceededError(BallotChainError):
    kind = "deadline"

    def __init__(self, message: str = "Deadline exceeded before the call finished"):
        super().__init__(message, recoverable=True)
