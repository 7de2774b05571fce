from cache_store import LAST_VOTE_TX_KEY, CacheStore, safe_set_json
from errors import BallotChainError, ConfigurationError, ValidationError
from logger import get_logger
from models import Receipt, RecordSource, TransactionRecord, TxMethod, VoteRecord
from privacy import identity_hash_bytes
from results import WriteOutcome, WriteStatus
from signer import Signer

logger = get_logger(__name__)


def record_latest_transaction(gateway, cache: CacheStore, receipt: Receipt, method: TxMethod, key: str) -> list[str]:
    """Store a confirmed receipt as the single "last transaction" entry under ``key``; returns warnings."""
    try:
        timestamp = gateway.block_timestamp(receipt.confirmed_round)
    except BallotChainError as exc:
        logger.error("Could not read confirming block %s for %s: %s", receipt.confirmed_round, receipt.tx_id, exc)
        return [f"confirming block timestamp unavailable: {exc.message}"]

    record = TransactionRecord(
        hash=receipt.tx_id,
        timestamp=timestamp,
        sender=receipt.sender,
        receiver=receipt.receiver,
        method=method,
        block_number=receipt.confirmed_round,
        status=receipt.status,
        source=RecordSource.CACHE,
    )
    if not safe_set_json(cache, key, record.to_dict()):
        return [f"could not store {method.value} transaction record"]
    return []


def require_signer(signer: Signer | None) -> Signer:
    if signer is None:
        raise ConfigurationError("No signer configured for write operations", config_key="ALGORAND_SERVICE_MNEMONIC")
    return signer


class VoteSubmitter:
    def __init__(self, gateway, cache: CacheStore, signer: Signer | None = None):
        self.gateway = gateway
        self.cache = cache
        self.signer = signer

    def cast_vote(
        self,
        election_id: int,
        candidate_index: int,
        voter_identity_hash: str,
        signer: Signer | None = None,
    ) -> WriteOutcome:
        """
        Send castVote and wait for confirmation.

        Raises UserDeclinedError, ContractRevertError (duplicate hash, closed
        election) or NetworkError. Retrying after NetworkError is safe: the
        contract rejects a second vote with the same hash.
        """
        vote = VoteRecord(election_id, candidate_index, voter_identity_hash)
        if vote.election_id <= 0:
            raise ValidationError("election_id must be a positive integer", field_name="election_id")
        if vote.candidate_index < 0:
            raise ValidationError("candidate_index must not be negative", field_name="candidate_index")
        hash_bytes = identity_hash_bytes(vote.voter_identity_hash)

        active_signer = require_signer(signer or self.signer)
        active_signer.request_authorization()

        pending = self.gateway.write_call(
            "castVote", [vote.election_id, vote.candidate_index, hash_bytes], active_signer
        )
        logger.info("Vote transaction sent: %s", pending.tx_id)
        receipt = self.gateway.await_confirmation(pending)
        logger.info("Vote transaction confirmed in round %s", receipt.confirmed_round)

        warnings = record_latest_transaction(self.gateway, self.cache, receipt, TxMethod.CAST_VOTE, LAST_VOTE_TX_KEY)
        return WriteOutcome(
            status=WriteStatus.INCOMPLETE if warnings else WriteStatus.SUCCESS,
            tx_id=receipt.tx_id,
            confirmed_round=receipt.confirmed_round,
            election_id=vote.election_id,
            warnings=warnings,
        )
