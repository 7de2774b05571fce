from dataclasses import dataclass, field

from algosdk import abi, encoding

from models import TxMethod

METHOD_SIGNATURES = {
    "currentElectionId": "currentElectionId()uint64",
    "elections": "elections(uint64)(string,uint64,uint64,bool)",
    "getCandidate": "getCandidate(uint64,uint64)(string,string,uint64)",
    "getAllCandidates": "getAllCandidates(uint64)(string[],string[],uint64[])",
    "getTotalVotes": "getTotalVotes(uint64)uint64",
    "admin": "admin()address",
    "castVote": "castVote(uint64,uint64,byte[32])void",
    "createElection": "createElection(string,uint64,uint64,string[],string[])void",
}

EVENT_SIGNATURES = {
    "ElectionCreated": "ElectionCreated(uint64,string)",
    "VoteCast": "VoteCast(uint64,uint64)",
}

SELECTOR_SIZE = 4


def event_selector(signature: str) -> bytes:
    # ARC-28: first four bytes of SHA-512/256 over the event signature
    return encoding.checksum(signature.encode("utf-8"))[:SELECTOR_SIZE]


@dataclass(frozen=True)
class ContractInterface:
    """ABI surface of the voting application and the selectors derived from it."""

    methods: dict[str, str] = field(default_factory=lambda: dict(METHOD_SIGNATURES))
    events: dict[str, str] = field(default_factory=lambda: dict(EVENT_SIGNATURES))

    def method(self, name: str) -> abi.Method:
        try:
            return abi.Method.from_signature(self.methods[name])
        except KeyError as exc:
            raise KeyError(f"Unknown contract method: {name}") from exc

    def selector(self, name: str) -> bytes:
        return self.method(name).get_selector()

    def event_selector(self, name: str) -> bytes:
        return event_selector(self.events[name])

    def event_arg_types(self, name: str) -> abi.ABIType:
        signature = self.events[name]
        return abi.ABIType.from_string(signature[signature.index("("):])

    def decode_method(self, call_data: bytes | None) -> TxMethod:
        """Match the fixed-width selector prefix of raw call data against the known writes."""
        if not call_data or len(call_data) < SELECTOR_SIZE:
            return TxMethod.UNKNOWN
        prefix = bytes(call_data[:SELECTOR_SIZE])
        if prefix == self.selector("createElection"):
            return TxMethod.CREATE_ELECTION
        if prefix == self.selector("castVote"):
            return TxMethod.CAST_VOTE
        return TxMethod.UNKNOWN
