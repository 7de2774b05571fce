import pytest

from cache_store import LAST_CREATION_TX_KEY, candidates_key
from election_admin import ElectionAdmin
from errors import UserDeclinedError, ValidationError
from results import WriteStatus

from conftest import ADMIN_ADDRESS, NOW, FakeSigner


def _admin(gateway, cache, signer=None):
    return ElectionAdmin(gateway, cache, signer, clock=lambda: NOW)


def _create(admin, **overrides):
    params = dict(
        name="Student Council",
        start_time=NOW + 60,
        end_time=NOW + 3600,
        candidate_names=["Alice", "Bob"],
        candidate_parties=["Blue", "Green"],
    )
    params.update(overrides)
    return admin.create_election(**params)


def test_is_admin_ignores_case_and_whitespace(gateway, cache):
    admin = _admin(gateway, cache)
    assert admin.is_admin(f"  {ADMIN_ADDRESS.lower()} ")
    assert not admin.is_admin("SOMEONEELSE")
    assert not admin.is_admin("")


def test_create_election_caches_candidates_and_transaction(gateway, cache, signer):
    gateway.current_id = 4  # the fake does not advance it on write

    outcome = _create(_admin(gateway, cache, signer))

    assert outcome.status is WriteStatus.SUCCESS
    assert outcome.election_id == 4
    name, args, _ = gateway.writes[0]
    assert name == "createElection"
    assert args == ["Student Council", NOW + 60, NOW + 3600, ["Alice", "Bob"], ["Blue", "Green"]]
    assert cache.get_json(candidates_key(4)) == [
        {"index": 0, "name": "Alice", "party": "Blue", "votes": 0},
        {"index": 1, "name": "Bob", "party": "Green", "votes": 0},
    ]
    assert cache.get_json(LAST_CREATION_TX_KEY)["method"] == "createElection"


def test_unreadable_new_id_makes_outcome_incomplete(gateway, cache, signer):
    gateway.fail.add("currentElectionId")

    outcome = _create(_admin(gateway, cache, signer))

    assert outcome.status is WriteStatus.INCOMPLETE
    assert outcome.election_id is None
    assert outcome.tx_id == "TX1"
    assert cache.get_json(LAST_CREATION_TX_KEY) is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "  "},
        {"candidate_names": []},
        {"candidate_parties": ["Blue"]},
        {"candidate_names": ["Alice", " "]},
        {"start_time": NOW - 1},
        {"end_time": NOW + 30},
    ],
)
def test_invalid_input_is_rejected_before_any_write(gateway, cache, signer, overrides):
    with pytest.raises(ValidationError):
        _create(_admin(gateway, cache, signer), **overrides)
    assert gateway.writes == []
    assert signer.authorizations == 0


def test_declined_creation_writes_nothing(gateway, cache):
    with pytest.raises(UserDeclinedError):
        _create(_admin(gateway, cache, FakeSigner(decline=True)))
    assert gateway.writes == []
    assert cache.keys() == []
