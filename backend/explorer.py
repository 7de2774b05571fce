from dataclasses import asdict, dataclass
from typing import Any, Callable

from discovery import ElectionDiscovery, epoch_now
from fanout import fan_out
from logger import get_logger
from models import Election, ElectionStatus
from tally_reader import TallyReader

logger = get_logger(__name__)

STATUS_ORDER = {ElectionStatus.ACTIVE: 0, ElectionStatus.UPCOMING: 1, ElectionStatus.COMPLETED: 2}


@dataclass(frozen=True)
class ElectionSummary:
    election_id: int
    name: str
    start_time: int
    end_time: int
    status: ElectionStatus
    total_votes: int

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class ExplorerStatistics:
    total_elections: int
    total_votes: int
    active_elections: int
    upcoming_elections: int
    completed_elections: int
    active_election_id: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _sort_key(summary: ElectionSummary) -> tuple[int, int]:
    # completed: most recently ended first; otherwise soonest start first
    if summary.status is ElectionStatus.COMPLETED:
        return STATUS_ORDER[summary.status], -summary.end_time
    return STATUS_ORDER[summary.status], summary.start_time


class ElectionExplorer:
    def __init__(
        self,
        discovery: ElectionDiscovery,
        reader: TallyReader,
        max_workers: int = 8,
        clock: Callable[[], int] = epoch_now,
    ):
        self.discovery = discovery
        self.reader = reader
        self.max_workers = max_workers
        self.clock = clock

    def _summarize(self, election_id: int) -> ElectionSummary | None:
        info = self.reader.get_election_info(election_id)
        if info is None or not info.name:
            return None
        election = Election(election_id, info.name, info.start_time, info.end_time)
        return ElectionSummary(
            election_id=election_id,
            name=info.name,
            start_time=info.start_time,
            end_time=info.end_time,
            status=election.status(self.clock()),
            total_votes=self.reader.get_total_votes(election_id),
        )

    def list_elections(self) -> list[ElectionSummary]:
        ids = self.discovery.probe_ids(self.discovery.current_election_id())
        summaries = []
        for outcome in fan_out(self._summarize, ids, self.max_workers):
            if not outcome.ok:
                logger.warning("Error fetching election %s: %s", outcome.item, outcome.error)
            elif outcome.value is not None:
                summaries.append(outcome.value)
        return sorted(summaries, key=_sort_key)

    def statistics(self) -> ExplorerStatistics:
        summaries = self.list_elections()

        def count(status: ElectionStatus) -> int:
            return sum(1 for s in summaries if s.status is status)

        return ExplorerStatistics(
            total_elections=len(summaries),
            total_votes=sum(s.total_votes for s in summaries),
            active_elections=count(ElectionStatus.ACTIVE),
            upcoming_elections=count(ElectionStatus.UPCOMING),
            completed_elections=count(ElectionStatus.COMPLETED),
            active_election_id=self.discovery.active_election_id(),
        )
