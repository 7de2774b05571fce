from dataclasses import replace
from typing import Any, Callable

from cache_store import CacheStore, candidates_key, info_key, read_through, safe_get_json
from discovery import epoch_now
from errors import BallotChainError
from logger import get_logger
from models import Candidate, ElectionInfo
from results import ReadResult

logger = get_logger(__name__)


def _encode_candidates(candidates: list[Candidate]) -> list[dict[str, Any]]:
    return [candidate.to_dict() for candidate in candidates]


def _decode_candidates(data: list[dict[str, Any]]) -> list[Candidate]:
    return [Candidate.from_dict(item) for item in data]


class TallyReader:
    """Election info, candidates and vote totals: chain is the truth, the cache is the fallback."""

    def __init__(self, gateway, cache: CacheStore, clock: Callable[[], int] = epoch_now):
        self.gateway = gateway
        self.cache = cache
        self.clock = clock

    # -- candidates --------------------------------------------------------

    def read_all_candidates(self, election_id: int) -> ReadResult[list[Candidate]]:
        return read_through(
            lambda: self.gateway.get_all_candidates(election_id),
            self.cache,
            candidates_key(election_id),
            _encode_candidates,
            _decode_candidates,
        )

    def get_all_candidates(self, election_id: int) -> list[Candidate]:
        result = self.read_all_candidates(election_id)
        if not result.is_found:
            logger.warning("No candidate data for election %s (%s)", election_id, result.status.value)
            return []
        return result.value

    def get_candidate(self, election_id: int, index: int) -> Candidate | None:
        try:
            return self.gateway.get_candidate(election_id, index)
        except BallotChainError as exc:
            logger.warning("Error getting candidate %s for election %s: %s", index, election_id, exc)
        cached = safe_get_json(self.cache, candidates_key(election_id))
        if cached is None:
            return None
        try:
            candidates = _decode_candidates(cached)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Cached candidates for election %s are unreadable: %s", election_id, exc)
            return None
        return next((c for c in candidates if c.index == index), None)

    def candidate_count(self, election_id: int) -> int:
        cached = safe_get_json(self.cache, candidates_key(election_id))
        if cached is not None:
            return len(cached)
        result = self.read_all_candidates(election_id)
        if result.is_found:
            return len(result.value)
        logger.warning("No candidate information found for election %s", election_id)
        return 0

    # -- election info -----------------------------------------------------

    def read_election_info(self, election_id: int) -> ReadResult[ElectionInfo]:
        now = self.clock()

        def fetch() -> ElectionInfo | None:
            election = self.gateway.get_election(election_id)
            if not election.exists:
                return None
            return ElectionInfo(
                election_id=election_id,
                name=election.name,
                start_time=election.start_time,
                end_time=election.end_time,
                active=election.contains(now),
                candidate_count=self.candidate_count(election_id),
            )

        def from_cache(data: dict[str, Any]) -> ElectionInfo:
            info = ElectionInfo.from_dict(data)
            # the snapshot's flag is as old as the snapshot
            return replace(info, active=info.start_time <= now <= info.end_time)

        return read_through(fetch, self.cache, info_key(election_id), ElectionInfo.to_dict, from_cache)

    def get_election_info(self, election_id: int) -> ElectionInfo | None:
        return self.read_election_info(election_id).value_or(None)

    # -- totals ------------------------------------------------------------

    def get_total_votes(self, election_id: int) -> int:
        try:
            return self.gateway.get_total_votes(election_id)
        except BallotChainError as exc:
            logger.info("Direct vote total unavailable for election %s (%s), summing candidates", election_id, exc)
        return sum(candidate.vote_count for candidate in self.get_all_candidates(election_id))
