"""
Best-effort transaction history for the voting application.

Layers, each attempted regardless of how the previous one fared:

1. creation and vote events per known election (indexer logs)
2. a synthesized creation record per election when its events cannot be queried
3. a strided backward scan over recent blocks, capped by record count
4. the cached "last creation" and "last vote" records

Results are deduplicated by hash and sorted newest first. Nothing here
raises; an empty list means every layer came up empty.
"""

import time
from typing import Callable

from algorand_client import ZERO_ADDRESS
from cache_store import LAST_CREATION_TX_KEY, LAST_VOTE_TX_KEY, CacheStore, safe_get_json
from config import ScanPolicy
from discovery import epoch_now
from errors import BallotChainError
from fanout import fan_out
from logger import get_logger
from models import (
    BlockTransaction,
    ChainEvent,
    Election,
    RecordSource,
    TransactionRecord,
    TxMethod,
    TxStatus,
)

logger = get_logger(__name__)

ONE_DAY_SECONDS = 24 * 60 * 60

EVENT_METHODS = {
    "ElectionCreated": TxMethod.CREATE_ELECTION,
    "VoteCast": TxMethod.CAST_VOTE,
}


class HistoryReconstructor:
    def __init__(
        self,
        gateway,
        cache: CacheStore,
        policy: ScanPolicy | None = None,
        max_workers: int = 8,
        clock: Callable[[], int] = epoch_now,
    ):
        self.gateway = gateway
        self.cache = cache
        self.policy = policy or ScanPolicy()
        self.max_workers = max_workers
        self.clock = clock

    def reconstruct(self) -> list[TransactionRecord]:
        records: dict[str, TransactionRecord] = {}
        self._collect_election_records(records)
        self._scan_blocks(records)
        self._merge_cached(records)
        return sorted(records.values(), key=lambda record: record.timestamp, reverse=True)

    @staticmethod
    def _add(records: dict[str, TransactionRecord], record: TransactionRecord) -> bool:
        if record.hash in records:
            return False
        records[record.hash] = record
        return True

    # -- layers 1 and 2 ----------------------------------------------------

    def synthesize_creation_record(self, election: Election) -> TransactionRecord:
        """Placeholder for a creation transaction we cannot locate. Not a ledger id."""
        pseudo = f"{election.id}:{election.name}".encode("utf-8").hex()[:64]
        return TransactionRecord(
            hash=f"0x{pseudo}",
            timestamp=max(0, election.start_time - ONE_DAY_SECONDS),
            sender=ZERO_ADDRESS,
            receiver=self.gateway.application_address,
            method=TxMethod.CREATE_ELECTION,
            block_number=0,
            status=TxStatus.CONFIRMED,
            synthetic=True,
            source=RecordSource.SYNTHESIZED,
        )

    def _resolve(self, event: ChainEvent) -> TransactionRecord | None:
        try:
            receipt = self.gateway.get_transaction(event.tx_id)
            confirmed_round = receipt.confirmed_round or event.confirmed_round
            timestamp = receipt.timestamp
            if timestamp is None:
                timestamp = self.gateway.block_timestamp(confirmed_round)
        except BallotChainError as exc:
            logger.warning("Could not resolve %s transaction %s: %s", event.name, event.tx_id, exc)
            return None
        return TransactionRecord(
            hash=event.tx_id,
            timestamp=timestamp,
            sender=receipt.sender,
            receiver=receipt.receiver,
            method=EVENT_METHODS.get(event.name, TxMethod.UNKNOWN),
            block_number=confirmed_round,
            status=receipt.status,
            source=RecordSource.EVENT,
        )

    def _election_records(self, election_id: int) -> list[TransactionRecord]:
        election = self.gateway.get_election(election_id)
        if not election.exists:
            return []

        found: list[TransactionRecord] = []
        try:
            creation_events = self.gateway.query_events("ElectionCreated", election_id)
        except BallotChainError as exc:
            logger.info("Could not get creation events for election %s: %s", election_id, exc)
            found.append(self.synthesize_creation_record(election))
        else:
            found.extend(r for r in map(self._resolve, creation_events) if r is not None)

        try:
            vote_events = self.gateway.query_events("VoteCast", election_id)
        except BallotChainError as exc:
            logger.info("Could not get vote events for election %s: %s", election_id, exc)
        else:
            found.extend(r for r in map(self._resolve, vote_events) if r is not None)
        return found

    def _collect_election_records(self, records: dict[str, TransactionRecord]) -> None:
        try:
            election_count = self.gateway.current_election_id()
        except BallotChainError as exc:
            logger.warning("Could not read election count: %s", exc)
            return
        logger.debug("Found %s elections", election_count)

        outcomes = fan_out(
            self._election_records,
            range(1, election_count + 1),
            self.max_workers,
            timeout=self.policy.deadline_seconds,
        )
        for outcome in outcomes:
            if not outcome.ok:
                logger.warning("Error processing election %s: %s", outcome.item, outcome.error)
                continue
            for record in outcome.value:
                self._add(records, record)

    # -- layer 3 -----------------------------------------------------------

    def _touches_contract(self, tx: BlockTransaction) -> bool:
        app_address = self.gateway.application_address
        return tx.app_id == self.gateway.app_id or app_address in (tx.sender, tx.receiver)

    def _scan_blocks(self, records: dict[str, TransactionRecord]) -> None:
        cap = self.policy.record_cap
        if len(records) >= cap:
            return
        try:
            latest_round = self.gateway.latest_round()
        except BallotChainError as exc:
            logger.warning("Error fetching block range: %s", exc)
            return

        rounds = self.policy.rounds(latest_round)
        logger.debug("Scanning %s blocks from %s down to %s", len(rounds), rounds[0], rounds[-1])
        deadline = time.monotonic() + self.policy.deadline_seconds

        for start in range(0, len(rounds), self.max_workers):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Block scan stopped at its deadline after %s blocks", start)
                return
            batch = rounds[start:start + self.max_workers]
            for outcome in fan_out(self.gateway.get_block, batch, self.max_workers, timeout=remaining):
                if not outcome.ok:
                    logger.debug("Error processing block %s: %s", outcome.item, outcome.error)
                    continue
                block = outcome.value
                for tx in block.transactions:
                    if len(records) >= cap:
                        return
                    if not self._touches_contract(tx):
                        continue
                    method = (
                        self.gateway.contract.decode_method(tx.call_data)
                        if tx.app_id == self.gateway.app_id
                        else TxMethod.UNKNOWN
                    )
                    self._add(
                        records,
                        TransactionRecord(
                            hash=tx.tx_id,
                            timestamp=block.timestamp,
                            sender=tx.sender,
                            receiver=tx.receiver,
                            method=method,
                            block_number=block.round,
                            status=TxStatus.CONFIRMED,
                            source=RecordSource.BLOCK_SCAN,
                        ),
                    )
            if len(records) >= cap:
                return

    # -- layer 4 -----------------------------------------------------------

    def _merge_cached(self, records: dict[str, TransactionRecord]) -> None:
        for key in (LAST_CREATION_TX_KEY, LAST_VOTE_TX_KEY):
            data = safe_get_json(self.cache, key)
            if data is None:
                continue
            try:
                record = TransactionRecord.from_dict(data)
            except (KeyError, ValueError, TypeError, AttributeError) as exc:
                logger.error("Error parsing stored transaction %s: %s", key, exc)
                continue
            self._add(records, record)
