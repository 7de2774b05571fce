import base64
import socket
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable
from urllib.error import URLError

from algosdk import abi, encoding, logic
from algosdk.atomic_transaction_composer import AtomicTransactionComposer, EmptySigner
from algosdk.error import AlgodHTTPError, IndexerHTTPError
from algosdk.v2client import algod, indexer
from algosdk.v2client.models import SimulateRequest

from config import ChainSettings
from errors import (
    BallotChainError,
    ChainTimeoutError,
    ConfirmationTimeoutError,
    ContractRevertError,
    DecodeError,
    EventQueryUnsupportedError,
    NetworkError,
)
from logger import get_logger
from models import (
    BlockTransaction,
    Candidate,
    ChainBlock,
    ChainEvent,
    Election,
    PendingTransaction,
    Receipt,
    TxStatus,
)
from signer import Signer

logger = get_logger(__name__)

ZERO_ADDRESS = encoding.encode_address(bytes(32))

REVERT_MARKERS = ("logic eval error", "rejected by logic", "assert failed", "err opcode", "transaction rejected")


def _address(value: Any) -> str:
    """Block and pending-info payloads carry addresses either as base32 or base64 of the raw key."""
    if not value:
        return ""
    if isinstance(value, bytes):
        return encoding.encode_address(value) if len(value) == 32 else ""
    if encoding.is_valid_address(value):
        return value
    try:
        raw = base64.b64decode(value)
    except (ValueError, TypeError):
        return ""
    return encoding.encode_address(raw) if len(raw) == 32 else ""


def _first_app_arg(args: list[str] | None) -> bytes | None:
    if not args:
        return None
    return base64.b64decode(args[0])


class VotingChainGateway:
    """
    Thin adapter over algod (and optionally the indexer) for one voting application.

    Holds nothing but the connection handles. Retries belong to the caller.
    Every remote call is bounded by ``call_timeout_seconds``.
    """

    def __init__(
        self,
        settings: ChainSettings,
        algod_client: algod.AlgodClient | None = None,
        indexer_client: indexer.IndexerClient | None = None,
        event_page_limit: int = 10,
        event_page_size: int = 500,
    ) -> None:
        self.settings = settings
        self.contract = settings.contract
        self.app_id = settings.app_id
        self.application_address = logic.get_application_address(self.app_id)
        self.read_sender = settings.read_sender or self.application_address
        self.call_timeout = settings.call_timeout_seconds
        self.timeout_rounds = settings.tx_timeout_rounds
        self.event_page_limit = event_page_limit
        self.event_page_size = event_page_size

        self.algod = algod_client or algod.AlgodClient(
            algod_token=settings.algod_token,
            algod_address=settings.algod_address,
            headers={"X-API-Key": settings.algod_token},
        )
        self.indexer = indexer_client
        if self.indexer is None and settings.has_indexer:
            self.indexer = indexer.IndexerClient(
                indexer_token=settings.indexer_token,
                indexer_address=settings.indexer_address,
                headers={"X-API-Key": settings.indexer_token},
            )
        self._calls = ThreadPoolExecutor(max_workers=16, thread_name_prefix="chain-call")

    def close(self) -> None:
        self._calls.shutdown(wait=False, cancel_futures=True)

    @property
    def supports_events(self) -> bool:
        return self.indexer is not None

    @staticmethod
    def _u64(value: int) -> bytes:
        return int(value).to_bytes(8, "big")

    @classmethod
    def _box_key(cls, election_id: int, voter_hash: bytes) -> bytes:
        return b"voter_" + cls._u64(election_id) + voter_hash

    def _translate(self, exc: Exception, operation: str) -> BallotChainError:
        if isinstance(exc, BallotChainError):
            return exc
        if isinstance(exc, (AlgodHTTPError, IndexerHTTPError)):
            message = str(exc)
            if any(marker in message.lower() for marker in REVERT_MARKERS):
                return ContractRevertError(message, method=operation)
            return NetworkError(message, operation=operation)
        if isinstance(exc, (URLError, ConnectionError, socket.timeout, TimeoutError)):
            return NetworkError(str(exc) or exc.__class__.__name__, operation=operation)
        if isinstance(exc, (KeyError, ValueError, TypeError, IndexError)):
            return DecodeError(f"Unexpected response shape: {exc!r}", method=operation)
        return NetworkError(f"{exc.__class__.__name__}: {exc}", operation=operation)

    def _guarded(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        future = self._calls.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=self.call_timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ChainTimeoutError(
                f"{operation} did not answer within {self.call_timeout}s", operation=operation
            ) from exc
        except Exception as exc:  # noqa: BLE001
            translated = self._translate(exc, operation)
            if translated is exc:
                raise
            raise translated from exc

    # -- reads -----------------------------------------------------------

    def _simulate(self, method: abi.Method, method_args: list[Any]) -> Any:
        atc = AtomicTransactionComposer()
        atc.add_method_call(
            app_id=self.app_id,
            method=method,
            sender=self.read_sender,
            sp=self.algod.suggested_params(),
            signer=EmptySigner(),
            method_args=method_args,
        )
        response = atc.simulate(
            self.algod, SimulateRequest(txn_groups=[], allow_empty_signatures=True, allow_unnamed_resources=True)
        )
        if response.failure_message:
            raise ContractRevertError(response.failure_message, method=method.name)
        if not response.abi_results:
            raise DecodeError("Simulation returned no ABI result", method=method.name)
        result = response.abi_results[0]
        if result.decode_error:
            raise DecodeError(str(result.decode_error), method=method.name)
        return result.return_value

    def read_call(self, name: str, *args: Any) -> Any:
        method = self.contract.method(name)
        return self._guarded(name, self._simulate, method, list(args))

    def current_election_id(self) -> int:
        value = self.read_call("currentElectionId")
        if not isinstance(value, int):
            raise DecodeError(f"Expected uint64, got {value!r}", method="currentElectionId")
        return value

    def get_election(self, election_id: int) -> Election:
        value = self.read_call("elections", election_id)
        if not isinstance(value, (list, tuple)) or len(value) != 4:
            raise DecodeError(f"Expected 4-field election tuple, got {value!r}", method="elections")
        name, start_time, end_time, exists = value
        return Election(
            id=election_id,
            name=str(name),
            start_time=int(start_time),
            end_time=int(end_time),
            exists=bool(exists),
        )

    def get_candidate(self, election_id: int, index: int) -> Candidate:
        value = self.read_call("getCandidate", election_id, index)
        if not isinstance(value, (list, tuple)) or len(value) != 3:
            raise DecodeError(f"Expected 3-field candidate tuple, got {value!r}", method="getCandidate")
        name, party, votes = value
        return Candidate(index=index, name=str(name), party=str(party), vote_count=int(votes))

    def get_all_candidates(self, election_id: int) -> list[Candidate]:
        value = self.read_call("getAllCandidates", election_id)
        if not isinstance(value, (list, tuple)) or len(value) != 3:
            raise DecodeError(f"Expected (names, parties, votes), got {value!r}", method="getAllCandidates")
        names, parties, votes = value
        if not (len(names) == len(parties) == len(votes)):
            raise DecodeError("Candidate arrays differ in length", method="getAllCandidates")
        return [
            Candidate(index=i, name=str(names[i]), party=str(parties[i]), vote_count=int(votes[i]))
            for i in range(len(names))
        ]

    def get_total_votes(self, election_id: int) -> int:
        value = self.read_call("getTotalVotes", election_id)
        if not isinstance(value, int):
            raise DecodeError(f"Expected uint64, got {value!r}", method="getTotalVotes")
        return value

    def admin_address(self) -> str:
        value = self.read_call("admin")
        if not isinstance(value, str):
            raise DecodeError(f"Expected address, got {value!r}", method="admin")
        return value

    # -- writes ----------------------------------------------------------

    def _boxes_for(self, name: str, method_args: list[Any]) -> list[tuple[int, bytes]]:
        if name == "castVote":
            election_id, _, voter_hash = method_args
            return [(0, self._box_key(election_id, voter_hash))]
        return []

    def write_call(self, name: str, method_args: list[Any], signer: Signer) -> PendingTransaction:
        method = self.contract.method(name)

        def submit() -> list[str]:
            atc = AtomicTransactionComposer()
            atc.add_method_call(
                app_id=self.app_id,
                method=method,
                sender=signer.address,
                sp=self.algod.suggested_params(),
                signer=signer.transaction_signer,
                method_args=list(method_args),
                boxes=self._boxes_for(name, method_args),
            )
            return atc.submit(self.algod)

        tx_ids = self._guarded(name, submit)
        logger.info("Submitted %s transaction %s", name, tx_ids[-1])
        return PendingTransaction(tx_id=tx_ids[-1], method=name)

    def await_confirmation(self, pending: PendingTransaction, timeout_rounds: int | None = None) -> Receipt:
        timeout = timeout_rounds if timeout_rounds is not None else self.timeout_rounds
        start_round = self.latest_round() + 1
        current_round = start_round
        while current_round < start_round + timeout:
            pending_txn = self._guarded("pending_transaction_info", self.algod.pending_transaction_info, pending.tx_id)
            confirmed_round = int(pending_txn.get("confirmed-round", 0))
            if confirmed_round > 0:
                body = pending_txn.get("txn", {}).get("txn", {})
                return Receipt(
                    tx_id=pending.tx_id,
                    confirmed_round=confirmed_round,
                    sender=_address(body.get("snd")),
                    receiver=self.application_address,
                    status=TxStatus.CONFIRMED,
                    call_data=_first_app_arg(body.get("apaa")),
                )
            pool_error = pending_txn.get("pool-error")
            if pool_error:
                raise ContractRevertError(f"Transaction rejected: {pool_error}", method=pending.method, tx_id=pending.tx_id)
            self._guarded("status_after_block", self.algod.status_after_block, current_round)
            current_round += 1
        raise ConfirmationTimeoutError(f"Transaction not confirmed after {timeout} rounds", tx_id=pending.tx_id)

    # -- blocks, transactions, events -------------------------------------

    def latest_round(self) -> int:
        status = self._guarded("status", self.algod.status)
        return int(status["last-round"])

    def block_timestamp(self, round_number: int) -> int:
        block_info = self._guarded("block_info", self.algod.block_info, round_number)
        return int(block_info["block"]["ts"])

    def _receiver_of(self, body: dict[str, Any]) -> tuple[int, str]:
        app_id = int(body.get("apid", 0) or 0)
        if body.get("type") == "appl" and app_id:
            return app_id, logic.get_application_address(app_id)
        return app_id, _address(body.get("rcv"))

    def get_block(self, round_number: int) -> ChainBlock:
        block_info = self._guarded("block_info", self.algod.block_info, round_number)
        block = block_info["block"]
        stxns = block.get("txns") or []
        block_out = ChainBlock(round=round_number, timestamp=int(block.get("ts", 0)))
        if not stxns:
            return block_out

        txid_resp = self._guarded("get_block_txids", self.algod.get_block_txids, round_number)
        tx_ids = txid_resp.get("blockTxids") or []
        if len(tx_ids) != len(stxns):
            raise DecodeError(f"Block {round_number} lists {len(stxns)} txns but {len(tx_ids)} ids", method="get_block")
        for tx_id, stxn in zip(tx_ids, stxns):
            body = stxn.get("txn", {})
            app_id, receiver = self._receiver_of(body)
            block_out.transactions.append(
                BlockTransaction(
                    tx_id=tx_id,
                    sender=_address(body.get("snd")),
                    receiver=receiver,
                    app_id=app_id,
                    call_data=_first_app_arg(body.get("apaa")),
                )
            )
        return block_out

    def _lookup_tx(self, tx_id: str) -> dict[str, Any]:
        if self.indexer:
            resp = self._guarded("search_transactions", self.indexer.search_transactions, txid=tx_id)
            txns = resp.get("transactions", [])
            if txns:
                return txns[0]
        pending = self._guarded("pending_transaction_info", self.algod.pending_transaction_info, tx_id)
        if pending:
            return pending
        raise DecodeError(f"Transaction {tx_id} not found on configured clients", method="get_transaction")

    def get_transaction(self, tx_id: str) -> Receipt:
        tx = self._lookup_tx(tx_id)
        confirmed_round = int(tx.get("confirmed-round", 0))
        status = TxStatus.CONFIRMED if confirmed_round > 0 else TxStatus.FAILED

        if "tx-type" in tx:
            app_txn = tx.get("application-transaction", {})
            app_id = int(app_txn.get("application-id", 0) or 0)
            if tx["tx-type"] == "appl" and app_id:
                receiver = logic.get_application_address(app_id)
            else:
                receiver = tx.get("payment-transaction", {}).get("receiver", "")
            return Receipt(
                tx_id=tx_id,
                confirmed_round=confirmed_round,
                sender=tx.get("sender", ""),
                receiver=receiver,
                status=status,
                timestamp=int(tx["round-time"]) if tx.get("round-time") else None,
                call_data=_first_app_arg(app_txn.get("application-args")),
            )

        body = tx.get("txn", {}).get("txn", {})
        _, receiver = self._receiver_of(body)
        timestamp = self.block_timestamp(confirmed_round) if confirmed_round > 0 else None
        return Receipt(
            tx_id=tx_id,
            confirmed_round=confirmed_round,
            sender=_address(body.get("snd")),
            receiver=receiver,
            status=status,
            timestamp=timestamp,
            call_data=_first_app_arg(body.get("apaa")),
        )

    def _events_in(self, txn: dict[str, Any], event_name: str, selector: bytes, arg_type: abi.ABIType, election_id: int) -> list[ChainEvent]:
        found = []
        for encoded_log in txn.get("logs") or []:
            try:
                raw = base64.b64decode(encoded_log)
                if raw[: len(selector)] != selector:
                    continue
                values = arg_type.decode(raw[len(selector):])
            except Exception as exc:  # noqa: BLE001
                logger.debug("Skipping undecodable %s log in %s: %s", event_name, txn.get("id"), exc)
                continue
            if int(values[0]) != election_id:
                continue
            found.append(
                ChainEvent(
                    name=event_name,
                    election_id=election_id,
                    tx_id=txn["id"],
                    confirmed_round=int(txn.get("confirmed-round", 0)),
                )
            )
        return found

    def query_events(self, event_name: str, election_id: int) -> list[ChainEvent]:
        if self.indexer is None:
            raise EventQueryUnsupportedError()
        selector = self.contract.event_selector(event_name)
        arg_type = self.contract.event_arg_types(event_name)

        events: list[ChainEvent] = []
        next_token = None
        for _ in range(self.event_page_limit):
            params: dict[str, Any] = {"application_id": self.app_id, "limit": self.event_page_size}
            if next_token:
                params["next_page"] = next_token
            response = self._guarded("search_transactions", self.indexer.search_transactions, **params)
            txns = response.get("transactions", [])
            for txn in txns:
                events.extend(self._events_in(txn, event_name, selector, arg_type, election_id))
            next_token = response.get("next-token")
            if not next_token or not txns:
                break
        return events
