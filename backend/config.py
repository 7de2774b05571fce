import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from contract import ContractInterface
from errors import ConfigurationError

load_dotenv()


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer", config_key=key) from exc


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number", config_key=key) from exc


@dataclass(frozen=True)
class ScanPolicy:
    """Cost bounds for the backward block scan used by history reconstruction."""

    window: int = 10000
    stride: int = 100
    record_cap: int = 20
    deadline_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.window < 0:
            raise ConfigurationError("scan window must not be negative", config_key="HISTORY_SCAN_WINDOW")
        if self.stride <= 0:
            raise ConfigurationError("scan stride must be positive", config_key="HISTORY_SCAN_STRIDE")
        if self.record_cap <= 0:
            raise ConfigurationError("record cap must be positive", config_key="HISTORY_RECORD_CAP")
        if self.deadline_seconds <= 0:
            raise ConfigurationError("scan deadline must be positive", config_key="HISTORY_SCAN_DEADLINE_SECONDS")

    def rounds(self, latest_round: int) -> list[int]:
        lowest = max(0, latest_round - self.window)
        return list(range(latest_round, lowest - 1, -self.stride))

    @classmethod
    def from_env(cls) -> "ScanPolicy":
        return cls(
            window=_int_env("HISTORY_SCAN_WINDOW", 10000),
            stride=_int_env("HISTORY_SCAN_STRIDE", 100),
            record_cap=_int_env("HISTORY_RECORD_CAP", 20),
            deadline_seconds=_float_env("HISTORY_SCAN_DEADLINE_SECONDS", 30.0),
        )


@dataclass
class ChainSettings:
    algod_address: str = ""
    algod_token: str = ""
    indexer_address: str = ""
    indexer_token: str = ""
    app_id: int = 0
    service_mnemonic: str = ""
    tx_timeout_rounds: int = 12
    call_timeout_seconds: float = 15.0
    read_sender: str = ""
    contract: ContractInterface = field(default_factory=ContractInterface)

    def validate(self) -> None:
        if not self.algod_address:
            raise ConfigurationError("ALGORAND_ALGOD_ADDRESS is required", config_key="ALGORAND_ALGOD_ADDRESS")
        if self.app_id <= 0:
            raise ConfigurationError(
                "ALGORAND_APP_ID must be set to a deployed application id", config_key="ALGORAND_APP_ID"
            )
        if self.tx_timeout_rounds <= 0:
            raise ConfigurationError("ALGORAND_TX_TIMEOUT_ROUNDS must be positive", config_key="ALGORAND_TX_TIMEOUT_ROUNDS")
        if self.call_timeout_seconds <= 0:
            raise ConfigurationError("CHAIN_CALL_TIMEOUT_SECONDS must be positive", config_key="CHAIN_CALL_TIMEOUT_SECONDS")

    @property
    def has_indexer(self) -> bool:
        return bool(self.indexer_address)

    @classmethod
    def from_env(cls) -> "ChainSettings":
        return cls(
            algod_address=os.getenv("ALGORAND_ALGOD_ADDRESS", ""),
            algod_token=os.getenv("ALGORAND_ALGOD_TOKEN", ""),
            indexer_address=os.getenv("ALGORAND_INDEXER_ADDRESS", ""),
            indexer_token=os.getenv("ALGORAND_INDEXER_TOKEN", ""),
            app_id=_int_env("ALGORAND_APP_ID", 0),
            service_mnemonic=os.getenv("ALGORAND_SERVICE_MNEMONIC", ""),
            tx_timeout_rounds=_int_env("ALGORAND_TX_TIMEOUT_ROUNDS", 12),
            call_timeout_seconds=_float_env("CHAIN_CALL_TIMEOUT_SECONDS", 15.0),
            read_sender=os.getenv("ALGORAND_READ_SENDER", ""),
        )


@dataclass
class CacheSettings:
    backend: str = "memory"
    database_url: str = ""
    pool_min: int = 1
    pool_max: int = 10

    def validate(self) -> None:
        if self.backend not in ("memory", "postgres"):
            raise ConfigurationError("CACHE_BACKEND must be 'memory' or 'postgres'", config_key="CACHE_BACKEND")
        if self.backend == "postgres" and not self.database_url:
            raise ConfigurationError("DATABASE_URL environment variable is not set", config_key="DATABASE_URL")

    @classmethod
    def from_env(cls) -> "CacheSettings":
        database_url = os.getenv("DATABASE_URL", "")
        return cls(
            backend=os.getenv("CACHE_BACKEND", "postgres" if database_url else "memory").strip().lower(),
            database_url=database_url,
            pool_min=_int_env("DB_POOL_MIN", 1),
            pool_max=_int_env("DB_POOL_MAX", 10),
        )


@dataclass
class Settings:
    chain: ChainSettings = field(default_factory=ChainSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    scan: ScanPolicy = field(default_factory=ScanPolicy)
    max_workers: int = 8
    discovery_min_probe: int = 10
    log_level: str = "INFO"
    log_dir: Path | None = None

    def validate(self) -> None:
        self.chain.validate()
        self.cache.validate()
        if self.max_workers <= 0:
            raise ConfigurationError("FANOUT_MAX_WORKERS must be positive", config_key="FANOUT_MAX_WORKERS")
        if self.discovery_min_probe < 0:
            raise ConfigurationError("DISCOVERY_MIN_PROBE must not be negative", config_key="DISCOVERY_MIN_PROBE")

    @classmethod
    def from_env(cls) -> "Settings":
        log_dir = os.getenv("LOG_DIR", "").strip()
        return cls(
            chain=ChainSettings.from_env(),
            cache=CacheSettings.from_env(),
            scan=ScanPolicy.from_env(),
            max_workers=_int_env("FANOUT_MAX_WORKERS", 8),
            discovery_min_probe=_int_env("DISCOVERY_MIN_PROBE", 10),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(log_dir) if log_dir else None,
        )
