import time
from typing import Callable

from errors import BallotChainError
from fanout import fan_out
from logger import get_logger

logger = get_logger(__name__)

NO_ACTIVE_ELECTION = 0


def epoch_now() -> int:
    return int(time.time())


class ElectionDiscovery:
    """
    Finds the election whose voting window contains "now".

    The contract offers no direct query for it, so discovery checks the most
    recent election first and otherwise probes ids ``1..max(current, min_probe)``.
    Probes run on a bounded pool; the lowest matching id wins.
    """

    def __init__(self, gateway, max_workers: int = 8, min_probe: int = 10, clock: Callable[[], int] = epoch_now):
        self.gateway = gateway
        self.max_workers = max_workers
        self.min_probe = min_probe
        self.clock = clock

    def current_election_id(self) -> int:
        try:
            return self.gateway.current_election_id()
        except BallotChainError as exc:
            logger.warning("Could not read current election id: %s", exc)
            return 0

    def probe_ids(self, current_id: int) -> list[int]:
        return list(range(1, max(current_id, self.min_probe) + 1))

    def _is_active(self, election_id: int, now: int) -> bool:
        election = self.gateway.get_election(election_id)
        return election.exists and election.contains(now)

    def active_election_id(self) -> int:
        now = self.clock()
        current_id = self.current_election_id()

        if current_id > 0:
            try:
                if self._is_active(current_id, now):
                    return current_id
            except BallotChainError as exc:
                logger.warning("Error checking election %s: %s", current_id, exc)

        outcomes = fan_out(lambda eid: self._is_active(eid, now), self.probe_ids(current_id), self.max_workers)
        for outcome in outcomes:
            if not outcome.ok:
                logger.debug("Error checking election %s: %s", outcome.item, outcome.error)
                continue
            if outcome.value:
                return outcome.item

        logger.info("No active elections found")
        return NO_ACTIVE_ELECTION
