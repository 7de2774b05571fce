from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ElectionStatus(str, Enum):
    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class TxMethod(str, Enum):
    CREATE_ELECTION = "createElection"
    CAST_VOTE = "castVote"
    UNKNOWN = "unknown"


class TxStatus(str, Enum):
    CONFIRMED = "Confirmed"
    FAILED = "Failed"


class RecordSource(str, Enum):
    EVENT = "event"
    BLOCK_SCAN = "block_scan"
    CACHE = "cache"
    SYNTHESIZED = "synthesized"


@dataclass(frozen=True)
class Election:
    id: int
    name: str
    start_time: int
    end_time: int
    exists: bool = True

    def contains(self, now: int) -> bool:
        return self.start_time <= now <= self.end_time

    def status(self, now: int) -> ElectionStatus:
        if now < self.start_time:
            return ElectionStatus.UPCOMING
        if now <= self.end_time:
            return ElectionStatus.ACTIVE
        return ElectionStatus.COMPLETED


@dataclass(frozen=True)
class Candidate:
    index: int
    name: str
    party: str
    vote_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "name": self.name, "party": self.party, "votes": self.vote_count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Candidate":
        return cls(
            index=int(data["index"]),
            name=str(data["name"]),
            party=str(data.get("party", "")),
            vote_count=int(data.get("votes", 0) or 0),
        )


@dataclass(frozen=True)
class ElectionInfo:
    election_id: int
    name: str
    start_time: int
    end_time: int
    active: bool
    candidate_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElectionInfo":
        return cls(
            election_id=int(data["election_id"]),
            name=str(data["name"]),
            start_time=int(data["start_time"]),
            end_time=int(data["end_time"]),
            active=bool(data["active"]),
            candidate_count=int(data.get("candidate_count", 0)),
        )


@dataclass(frozen=True)
class VoteRecord:
    election_id: int
    candidate_index: int
    voter_identity_hash: str


@dataclass
class TransactionRecord:
    """
    One row of the reconstructed history.

    ``synthetic`` is True for placeholders fabricated from election data;
    their ``hash`` is not a ledger transaction id.
    """

    hash: str
    timestamp: int
    sender: str
    receiver: str
    method: TxMethod
    block_number: int
    status: TxStatus
    synthetic: bool = False
    source: RecordSource = RecordSource.EVENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "timestamp": self.timestamp,
            "from": self.sender,
            "to": self.receiver,
            "method": self.method.value,
            "block_number": self.block_number,
            "status": self.status.value,
            "synthetic": self.synthetic,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionRecord":
        try:
            method = TxMethod(data.get("method", TxMethod.UNKNOWN.value))
        except ValueError:
            method = TxMethod.UNKNOWN
        return cls(
            hash=str(data["hash"]),
            timestamp=int(data["timestamp"]),
            sender=str(data.get("from", "")),
            receiver=str(data.get("to", "")),
            method=method,
            block_number=int(data.get("block_number", 0)),
            status=TxStatus(data.get("status", TxStatus.CONFIRMED.value)),
            synthetic=bool(data.get("synthetic", False)),
            source=RecordSource(data.get("source", RecordSource.CACHE.value)),
        )


@dataclass(frozen=True)
class PendingTransaction:
    tx_id: str
    method: str


@dataclass(frozen=True)
class Receipt:
    tx_id: str
    confirmed_round: int
    sender: str
    receiver: str
    status: TxStatus
    timestamp: int | None = None
    call_data: bytes | None = None


@dataclass(frozen=True)
class ChainEvent:
    name: str
    election_id: int
    tx_id: str
    confirmed_round: int


@dataclass(frozen=True)
class BlockTransaction:
    tx_id: str
    sender: str
    receiver: str
    app_id: int
    call_data: bytes | None = None


@dataclass
class ChainBlock:
    round: int
    timestamp: int
    transactions: list[BlockTransaction] = field(default_factory=list)
