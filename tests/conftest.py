import pytest
from algosdk import account, logic

from cache_store import MemoryCacheStore
from config import ScanPolicy, Settings
from contract import ContractInterface
from errors import (
    ContractRevertError,
    DecodeError,
    EventQueryUnsupportedError,
    NetworkError,
    UserDeclinedError,
)
from models import ChainBlock, Election, PendingTransaction, Receipt, TxStatus
from services import wire_services

APP_ID = 77
NOW = 1_700_000_000
_, VOTER_ADDRESS = account.generate_account()
_, ADMIN_ADDRESS = account.generate_account()


class FakeGateway:
    """In-memory stand-in for VotingChainGateway."""

    app_id = APP_ID

    def __init__(self):
        self.contract = ContractInterface()
        self.application_address = logic.get_application_address(APP_ID)
        self.current_id = 0
        self.elections: dict[int, Election] = {}
        self.candidates = {}
        self.totals = {}
        self.fail: set[str] = set()
        self.failing_elections: set[int] = set()
        self.events = None
        self.receipts: dict[str, Receipt] = {}
        self.blocks: dict[int, ChainBlock] = {}
        self.latest = 0
        self.admin = ADMIN_ADDRESS
        self.confirm_round = 500
        self.writes = []
        self.revert_message = None
        self.calls = []

    @property
    def supports_events(self) -> bool:
        return self.events is not None

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail:
            raise NetworkError("node unreachable", operation=operation)

    def add_election(self, election_id, name, start, end, exists=True):
        self.elections[election_id] = Election(election_id, name, start, end, exists)
        self.current_id = max(self.current_id, election_id)

    def current_election_id(self) -> int:
        self._maybe_fail("currentElectionId")
        return self.current_id

    def get_election(self, election_id: int) -> Election:
        self._maybe_fail("elections")
        if election_id in self.failing_elections:
            raise NetworkError(f"election {election_id} unreadable", operation="elections")
        return self.elections.get(election_id, Election(election_id, "", 0, 0, False))

    def get_candidate(self, election_id, index):
        self._maybe_fail("getCandidate")
        try:
            return self.candidates[election_id][index]
        except (KeyError, IndexError) as exc:
            raise ContractRevertError("candidate out of range", method="getCandidate") from exc

    def get_all_candidates(self, election_id):
        self._maybe_fail("getAllCandidates")
        return list(self.candidates.get(election_id, []))

    def get_total_votes(self, election_id):
        self._maybe_fail("getTotalVotes")
        if election_id not in self.totals:
            raise ContractRevertError("getTotalVotes is not implemented", method="getTotalVotes")
        return self.totals[election_id]

    def admin_address(self):
        self._maybe_fail("admin")
        return self.admin

    def write_call(self, name, method_args, signer):
        self._maybe_fail("write")
        if self.revert_message:
            raise ContractRevertError(self.revert_message, method=name)
        self.writes.append((name, list(method_args), signer.address))
        return PendingTransaction(tx_id=f"TX{len(self.writes)}", method=name)

    def await_confirmation(self, pending):
        self._maybe_fail("confirm")
        return Receipt(
            tx_id=pending.tx_id,
            confirmed_round=self.confirm_round,
            sender=VOTER_ADDRESS,
            receiver=self.application_address,
            status=TxStatus.CONFIRMED,
        )

    def latest_round(self):
        self._maybe_fail("status")
        return self.latest

    def block_timestamp(self, round_number):
        self._maybe_fail("block_timestamp")
        return NOW + round_number

    def get_block(self, round_number):
        self._maybe_fail("block_info")
        return self.blocks.get(round_number, ChainBlock(round=round_number, timestamp=NOW + round_number))

    def query_events(self, event_name, election_id):
        self._maybe_fail("search_transactions")
        if self.events is None:
            raise EventQueryUnsupportedError()
        return list(self.events.get((event_name, election_id), []))

    def get_transaction(self, tx_id):
        self._maybe_fail("get_transaction")
        if tx_id not in self.receipts:
            raise DecodeError(f"Transaction {tx_id} not found", method="get_transaction")
        return self.receipts[tx_id]


class FakeSigner:
    def __init__(self, address=VOTER_ADDRESS, decline=False):
        self._address = address
        self.decline = decline
        self.authorizations = 0

    @property
    def address(self):
        return self._address

    @property
    def transaction_signer(self):
        return None

    def request_authorization(self):
        self.authorizations += 1
        if self.decline:
            raise UserDeclinedError("User rejected the request")
        return self._address


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cache():
    return MemoryCacheStore()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def settings():
    return Settings(scan=ScanPolicy(window=300, stride=100, record_cap=20, deadline_seconds=5.0), max_workers=4)


@pytest.fixture
def services(gateway, cache, signer, settings, clock):
    return wire_services(gateway, cache, settings, signer, clock)
