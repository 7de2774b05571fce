from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from errors import BallotChainError

T = TypeVar("T")


class ReadStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class DataSource(str, Enum):
    CHAIN = "chain"
    CACHE = "cache"


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """
    Tri-state read outcome.

    NOT_FOUND means the chain answered and confirmed absence. FAILED means
    neither chain nor cache could answer, so the value is unknown.
    """

    status: ReadStatus
    value: T | None = None
    source: DataSource | None = None
    error: BallotChainError | None = None

    @classmethod
    def found(cls, value: T, source: DataSource) -> "ReadResult[T]":
        return cls(ReadStatus.FOUND, value=value, source=source)

    @classmethod
    def not_found(cls) -> "ReadResult[T]":
        return cls(ReadStatus.NOT_FOUND, source=DataSource.CHAIN)

    @classmethod
    def failed(cls, error: BallotChainError) -> "ReadResult[T]":
        return cls(ReadStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is ReadStatus.FOUND

    def value_or(self, default: T) -> T:
        return self.value if self.status is ReadStatus.FOUND else default


class WriteStatus(str, Enum):
    SUCCESS = "success"
    INCOMPLETE = "incomplete"


@dataclass
class WriteOutcome:
    """A confirmed write. INCOMPLETE means post-confirmation bookkeeping did not finish."""

    status: WriteStatus
    tx_id: str
    confirmed_round: int
    election_id: int | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "tx_id": self.tx_id,
            "confirmed_round": self.confirmed_round,
            "election_id": self.election_id,
            "warnings": list(self.warnings),
        }
