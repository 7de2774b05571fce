from dataclasses import dataclass
from typing import Callable

from algorand_client import VotingChainGateway
from cache_store import CacheStore, MemoryCacheStore, PostgresCacheStore
from config import Settings
from db import ConnectionPool
from discovery import ElectionDiscovery, epoch_now
from election_admin import ElectionAdmin
from explorer import ElectionExplorer
from history import HistoryReconstructor
from logger import get_logger
from signer import MnemonicSigner, Signer
from tally_reader import TallyReader
from vote_submitter import VoteSubmitter

logger = get_logger(__name__)


@dataclass
class Services:
    gateway: object
    cache: CacheStore
    discovery: ElectionDiscovery
    reader: TallyReader
    submitter: VoteSubmitter
    admin: ElectionAdmin
    history: HistoryReconstructor
    explorer: ElectionExplorer
    signer: Signer | None = None


def wire_services(
    gateway,
    cache: CacheStore,
    settings: Settings,
    signer: Signer | None = None,
    clock: Callable[[], int] = epoch_now,
) -> Services:
    discovery = ElectionDiscovery(gateway, settings.max_workers, settings.discovery_min_probe, clock)
    reader = TallyReader(gateway, cache, clock)
    return Services(
        gateway=gateway,
        cache=cache,
        discovery=discovery,
        reader=reader,
        submitter=VoteSubmitter(gateway, cache, signer),
        admin=ElectionAdmin(gateway, cache, signer, clock),
        history=HistoryReconstructor(gateway, cache, settings.scan, settings.max_workers, clock),
        explorer=ElectionExplorer(discovery, reader, settings.max_workers, clock),
        signer=signer,
    )


def build_cache(settings: Settings) -> CacheStore:
    if settings.cache.backend == "postgres":
        store = PostgresCacheStore(ConnectionPool(settings.cache))
        store.ensure_schema()
        return store
    return MemoryCacheStore()


def build_services(settings: Settings) -> Services:
    settings.validate()
    gateway = VotingChainGateway(settings.chain)
    signer = MnemonicSigner(settings.chain.service_mnemonic) if settings.chain.service_mnemonic else None
    if signer is None:
        logger.warning("ALGORAND_SERVICE_MNEMONIC not set; write endpoints are disabled")
    if not gateway.supports_events:
        logger.info("No indexer configured; history will use synthesized creation records")
    return wire_services(gateway, build_cache(settings), settings, signer)
