from typing import Callable

from cache_store import LAST_CREATION_TX_KEY, CacheStore, candidates_key, safe_set_json
from discovery import epoch_now
from errors import BallotChainError, ValidationError
from logger import get_logger
from models import Candidate, TxMethod
from results import WriteOutcome, WriteStatus
from signer import Signer
from vote_submitter import record_latest_transaction, require_signer

logger = get_logger(__name__)


def normalize_address(address: str) -> str:
    return address.strip().upper()


class ElectionAdmin:
    """Administrative writes. The contract itself enforces ``admin() == sender``."""

    def __init__(self, gateway, cache: CacheStore, signer: Signer | None = None, clock: Callable[[], int] = epoch_now):
        self.gateway = gateway
        self.cache = cache
        self.signer = signer
        self.clock = clock

    def is_admin(self, address: str) -> bool:
        if not address:
            return False
        return normalize_address(self.gateway.admin_address()) == normalize_address(address)

    def _validate(self, name: str, start_time: int, end_time: int, names: list[str], parties: list[str]) -> None:
        if not name or not name.strip():
            raise ValidationError("Election name is required", field_name="name")
        if not names:
            raise ValidationError("At least one candidate is required", field_name="candidate_names")
        if len(names) != len(parties):
            raise ValidationError("Each candidate needs exactly one party", field_name="candidate_parties")
        if any(not n or not n.strip() for n in names):
            raise ValidationError("Candidate names must not be empty", field_name="candidate_names")
        now = self.clock()
        if start_time <= now:
            raise ValidationError("Start time must be in the future", field_name="start_time")
        if end_time <= now:
            raise ValidationError("End time must be in the future", field_name="end_time")
        if end_time <= start_time:
            raise ValidationError("End time must be after start time", field_name="end_time")

    def create_election(
        self,
        name: str,
        start_time: int,
        end_time: int,
        candidate_names: list[str],
        candidate_parties: list[str],
        signer: Signer | None = None,
    ) -> WriteOutcome:
        """
        Submit createElection and do the post-confirmation bookkeeping.

        A confirmed transaction whose follow-up reads fail comes back as
        WriteStatus.INCOMPLETE rather than as an error.
        """
        self._validate(name, start_time, end_time, candidate_names, candidate_parties)
        active_signer = require_signer(signer or self.signer)
        active_signer.request_authorization()

        pending = self.gateway.write_call(
            "createElection",
            [name, int(start_time), int(end_time), list(candidate_names), list(candidate_parties)],
            active_signer,
        )
        logger.info("Election creation sent: %s", pending.tx_id)
        receipt = self.gateway.await_confirmation(pending)

        warnings = record_latest_transaction(
            self.gateway, self.cache, receipt, TxMethod.CREATE_ELECTION, LAST_CREATION_TX_KEY
        )

        election_id = None
        try:
            election_id = self.gateway.current_election_id()
        except BallotChainError as exc:
            logger.error("Election %s created but its id could not be read back: %s", receipt.tx_id, exc)
            warnings.append(f"new election id unavailable: {exc.message}")

        if election_id:
            candidates = [
                Candidate(index=i, name=n, party=p, vote_count=0)
                for i, (n, p) in enumerate(zip(candidate_names, candidate_parties))
            ]
            if safe_set_json(self.cache, candidates_key(election_id), [c.to_dict() for c in candidates]):
                logger.info("Cached %s candidates for election %s", len(candidates), election_id)
            else:
                warnings.append("could not cache the initial candidate list")

        return WriteOutcome(
            status=WriteStatus.INCOMPLETE if warnings else WriteStatus.SUCCESS,
            tx_id=receipt.tx_id,
            confirmed_round=receipt.confirmed_round,
            election_id=election_id,
            warnings=warnings,
        )
