from cache_store import LAST_CREATION_TX_KEY, LAST_VOTE_TX_KEY
from config import ScanPolicy
from history import ONE_DAY_SECONDS, HistoryReconstructor
from models import (
    BlockTransaction,
    ChainBlock,
    ChainEvent,
    Receipt,
    RecordSource,
    TransactionRecord,
    TxMethod,
    TxStatus,
)

from conftest import APP_ID, NOW, VOTER_ADDRESS


def _history(gateway, cache, **policy):
    params = dict(window=300, stride=100, record_cap=20, deadline_seconds=5.0)
    params.update(policy)
    return HistoryReconstructor(gateway, cache, ScanPolicy(**params), max_workers=4, clock=lambda: NOW)


def _cached_record(tx_hash, timestamp, method):
    return TransactionRecord(
        hash=tx_hash,
        timestamp=timestamp,
        sender=VOTER_ADDRESS,
        receiver="APP",
        method=method,
        block_number=1,
        status=TxStatus.CONFIRMED,
        source=RecordSource.CACHE,
    ).to_dict()


def _app_call(gateway, tx_id, method_name=None, call_data=None):
    if call_data is None:
        call_data = gateway.contract.selector(method_name) + b"\x00" * 8
    return BlockTransaction(
        tx_id=tx_id,
        sender=VOTER_ADDRESS,
        receiver=gateway.application_address,
        app_id=APP_ID,
        call_data=call_data,
    )


def test_empty_ledger_returns_cached_records_newest_first(gateway, cache):
    gateway.events = {}
    cache.set_json(LAST_CREATION_TX_KEY, _cached_record("CREATE", 100, TxMethod.CREATE_ELECTION))
    cache.set_json(LAST_VOTE_TX_KEY, _cached_record("VOTE", 200, TxMethod.CAST_VOTE))

    records = _history(gateway, cache).reconstruct()

    assert [r.hash for r in records] == ["VOTE", "CREATE"]
    assert all(r.source is RecordSource.CACHE for r in records)


def test_cached_records_with_same_hash_appear_once(gateway, cache):
    cache.set_json(LAST_CREATION_TX_KEY, _cached_record("SAME", 100, TxMethod.CREATE_ELECTION))
    cache.set_json(LAST_VOTE_TX_KEY, _cached_record("SAME", 100, TxMethod.CREATE_ELECTION))

    assert len(_history(gateway, cache).reconstruct()) == 1


def test_nothing_anywhere_is_an_empty_list(gateway, cache):
    assert _history(gateway, cache).reconstruct() == []


def test_synthesizes_creation_record_without_event_support(gateway, cache):
    gateway.add_election(1, "Board", NOW + 10 * ONE_DAY_SECONDS, NOW + 11 * ONE_DAY_SECONDS)

    records = _history(gateway, cache).reconstruct()

    assert len(records) == 1
    record = records[0]
    assert record.synthetic is True
    assert record.source is RecordSource.SYNTHESIZED
    assert record.method is TxMethod.CREATE_ELECTION
    assert record.timestamp == NOW + 9 * ONE_DAY_SECONDS
    assert record.hash == "0x" + "1:Board".encode().hex()
    assert record.receiver == gateway.application_address


def test_synthetic_hash_is_stable_across_runs(gateway, cache):
    gateway.add_election(1, "A very long election name that keeps going", NOW, NOW + 10)
    first = _history(gateway, cache).reconstruct()[0].hash
    second = _history(gateway, cache).reconstruct()[0].hash
    assert first == second
    assert len(first) == 2 + 64


def test_event_records_are_resolved_and_not_synthetic(gateway, cache):
    gateway.add_election(1, "Board", NOW, NOW + 10)
    gateway.events = {
        ("ElectionCreated", 1): [ChainEvent("ElectionCreated", 1, "TXC", 10)],
        ("VoteCast", 1): [ChainEvent("VoteCast", 1, "TXV", 20)],
    }
    gateway.receipts = {
        "TXC": Receipt("TXC", 10, VOTER_ADDRESS, gateway.application_address, TxStatus.CONFIRMED, timestamp=1000),
        "TXV": Receipt("TXV", 20, VOTER_ADDRESS, gateway.application_address, TxStatus.CONFIRMED),
    }

    records = _history(gateway, cache).reconstruct()

    assert [(r.hash, r.method) for r in records] == [
        ("TXV", TxMethod.CAST_VOTE),
        ("TXC", TxMethod.CREATE_ELECTION),
    ]
    assert records[0].timestamp == NOW + 20
    assert not any(r.synthetic for r in records)


def test_zero_creation_events_do_not_synthesize(gateway, cache):
    gateway.add_election(1, "Board", NOW, NOW + 10)
    gateway.events = {}
    assert _history(gateway, cache).reconstruct() == []


def test_missing_elections_are_skipped(gateway, cache):
    gateway.add_election(2, "Second", NOW, NOW + 10)  # id 1 never existed
    records = _history(gateway, cache).reconstruct()
    assert [r.hash for r in records] == ["0x" + "2:Second".encode().hex()]


def test_block_scan_decodes_methods_and_ignores_unrelated(gateway, cache):
    gateway.latest = 250
    gateway.blocks[250] = ChainBlock(250, NOW + 250, [
        _app_call(gateway, "SCAN_VOTE", "castVote"),
        BlockTransaction("PAY", VOTER_ADDRESS, "SOMEONE", 0),
    ])
    gateway.blocks[150] = ChainBlock(150, NOW + 150, [
        _app_call(gateway, "SCAN_CREATE", "createElection"),
        _app_call(gateway, "SCAN_OTHER", call_data=b"\xde\xad\xbe\xef"),
    ])

    records = _history(gateway, cache).reconstruct()

    assert {r.hash: r.method for r in records} == {
        "SCAN_VOTE": TxMethod.CAST_VOTE,
        "SCAN_CREATE": TxMethod.CREATE_ELECTION,
        "SCAN_OTHER": TxMethod.UNKNOWN,
    }
    assert [r.hash for r in records][0] == "SCAN_VOTE"
    assert all(r.source is RecordSource.BLOCK_SCAN for r in records)


def test_block_scan_stops_at_record_cap(gateway, cache):
    gateway.latest = 300
    for round_number in (300, 200, 100, 0):
        gateway.blocks[round_number] = ChainBlock(round_number, NOW + round_number, [
            _app_call(gateway, f"TX{round_number}-{i}", "castVote") for i in range(2)
        ])

    records = _history(gateway, cache, record_cap=3).reconstruct()

    assert len(records) == 3


def test_block_scan_follows_stride_and_window(gateway, cache):
    gateway.latest = 1000
    _history(gateway, cache, window=250, stride=100).reconstruct()
    scanned = [c for c in gateway.calls if c == "block_info"]
    assert len(scanned) == 3  # rounds 1000, 900, 800


def test_event_and_block_scan_duplicates_collapse(gateway, cache):
    gateway.add_election(1, "Board", NOW, NOW + 10)
    gateway.events = {("VoteCast", 1): [ChainEvent("VoteCast", 1, "TXV", 20)]}
    gateway.receipts = {
        "TXV": Receipt("TXV", 20, VOTER_ADDRESS, gateway.application_address, TxStatus.CONFIRMED, timestamp=500),
    }
    gateway.latest = 20
    gateway.blocks[20] = ChainBlock(20, NOW + 20, [_app_call(gateway, "TXV", "castVote")])

    records = _history(gateway, cache).reconstruct()

    assert len(records) == 1
    assert records[0].source is RecordSource.EVENT


def test_failures_in_every_chain_layer_still_return_cache(gateway, cache):
    gateway.fail.update({"currentElectionId", "status"})
    cache.set_json(LAST_VOTE_TX_KEY, _cached_record("VOTE", 200, TxMethod.CAST_VOTE))

    records = _history(gateway, cache).reconstruct()

    assert [r.hash for r in records] == ["VOTE"]


def test_corrupt_cache_entry_is_skipped(gateway, cache):
    cache.set(LAST_CREATION_TX_KEY, "{not json")
    cache.set_json(LAST_VOTE_TX_KEY, {"unexpected": True})
    assert _history(gateway, cache).reconstruct() == []


def test_cached_entry_that_is_not_an_object_is_skipped(gateway, cache):
    cache.set_json(LAST_CREATION_TX_KEY, _cached_record("CREATE", 100, TxMethod.CREATE_ELECTION))
    cache.set_json(LAST_VOTE_TX_KEY, ["not", "an", "object"])

    records = _history(gateway, cache).reconstruct()

    assert [r.hash for r in records] == ["CREATE"]
