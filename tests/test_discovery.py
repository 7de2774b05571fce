from discovery import NO_ACTIVE_ELECTION, ElectionDiscovery

from conftest import NOW


def _discovery(gateway, min_probe=10):
    return ElectionDiscovery(gateway, max_workers=4, min_probe=min_probe, clock=lambda: NOW)


def test_returns_current_election_when_it_is_active(gateway):
    gateway.add_election(1, "Old", NOW - 500, NOW - 100)
    gateway.add_election(2, "Board", NOW - 10, NOW + 10)

    assert _discovery(gateway).active_election_id() == 2
    # fast path: one id lookup, one election read
    assert gateway.calls == ["currentElectionId", "elections"]


def test_prefers_lowest_id_when_windows_overlap(gateway):
    gateway.add_election(1, "First", NOW - 5, NOW + 5)
    gateway.add_election(2, "Second", NOW - 10, NOW + 10)
    gateway.add_election(3, "Later", NOW + 100, NOW + 200)

    assert _discovery(gateway).active_election_id() == 1


def test_prefers_lowest_id_regardless_of_window_width(gateway):
    gateway.add_election(1, "Wide", NOW - 10, NOW + 10)
    gateway.add_election(2, "Narrow", NOW - 5, NOW + 5)
    gateway.add_election(3, "Later", NOW + 100, NOW + 200)

    assert _discovery(gateway).active_election_id() == 1


def test_window_bounds_are_inclusive(gateway):
    gateway.add_election(1, "Ends now", NOW - 10, NOW)
    assert _discovery(gateway).active_election_id() == 1


def test_skips_elections_that_do_not_exist(gateway):
    gateway.add_election(1, "Ghost", NOW - 1, NOW + 1, exists=False)
    gateway.add_election(2, "Real", NOW - 1, NOW + 1)
    gateway.current_id = 4

    assert _discovery(gateway).active_election_id() == 2


def test_per_election_failures_are_skipped(gateway):
    gateway.add_election(1, "Broken", NOW - 1, NOW + 1)
    gateway.add_election(2, "Readable", NOW - 1, NOW + 1)
    gateway.add_election(3, "Upcoming", NOW + 50, NOW + 60)
    gateway.failing_elections.add(1)

    assert _discovery(gateway).active_election_id() == 2


def test_returns_zero_when_nothing_is_active(gateway):
    gateway.add_election(1, "Done", NOW - 100, NOW - 50)
    gateway.add_election(2, "Soon", NOW + 50, NOW + 100)

    assert _discovery(gateway).active_election_id() == NO_ACTIVE_ELECTION


def test_still_probes_when_current_id_is_unreadable(gateway):
    gateway.add_election(7, "Hidden", NOW - 1, NOW + 1)
    gateway.fail.add("currentElectionId")

    assert _discovery(gateway).active_election_id() == 7


def test_returns_zero_when_every_read_fails(gateway):
    gateway.fail.update({"currentElectionId", "elections"})
    assert _discovery(gateway).active_election_id() == 0


def test_probe_range_covers_current_or_minimum():
    discovery = ElectionDiscovery(gateway=None, min_probe=10)
    assert discovery.probe_ids(0) == list(range(1, 11))
    assert discovery.probe_ids(3) == list(range(1, 11))
    assert discovery.probe_ids(25) == list(range(1, 26))
