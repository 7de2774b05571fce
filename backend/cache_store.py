import json
import threading
from typing import Any, Callable, TypeVar

import psycopg2

from db import ConnectionPool
from errors import BallotChainError, CachePersistenceError, DecodeError
from logger import get_logger
from results import DataSource, ReadResult

logger = get_logger(__name__)

T = TypeVar("T")

LATEST = "latest"


def cache_key(kind: str, entity_id: int | str, field: str) -> str:
    return f"{kind}_{entity_id}_{field}"


def candidates_key(election_id: int) -> str:
    return cache_key("election", election_id, "candidates")


def info_key(election_id: int) -> str:
    return cache_key("election", election_id, "info")


LAST_CREATION_TX_KEY = cache_key("tx", LATEST, "creation")
LAST_VOTE_TX_KEY = cache_key("tx", LATEST, "vote")


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


class CacheStore:
    """Advisory key/value snapshots. No expiry; last writer wins; absence is normal."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def get_json(self, key: str) -> Any | None:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CachePersistenceError(f"Corrupt cache entry: {exc}", key=key, operation="load") from exc

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, canonical_json(value))


class MemoryCacheStore(CacheStore):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class PostgresCacheStore(CacheStore):
    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    def ensure_schema(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS chain_cache (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT NOW()
            );
            """,
            (),
            operation="schema",
        )

    def _execute(self, sql: str, params: tuple, operation: str, key: str | None = None, fetch: bool = False):
        conn = None
        try:
            conn = self.pool.get_connection()
            cur = conn.cursor()
            try:
                cur.execute(sql, params)
                row = cur.fetchone() if fetch else None
                conn.commit()
                return row
            finally:
                cur.close()
        except psycopg2.Error as exc:
            if conn:
                conn.rollback()
            raise CachePersistenceError(f"Cache {operation} failed: {exc}", key=key, operation=operation) from exc
        finally:
            self.pool.release_connection(conn)

    def get(self, key: str) -> str | None:
        row = self._execute("SELECT value FROM chain_cache WHERE key = %s", (key,), "load", key=key, fetch=True)
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self._execute(
            """
            INSERT INTO chain_cache (key, value, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (key)
            DO UPDATE SET value = EXCLUDED.value, updated_at = NOW();
            """,
            (key, value),
            "save",
            key=key,
        )

    def delete(self, key: str) -> None:
        self._execute("DELETE FROM chain_cache WHERE key = %s", (key,), "delete", key=key)


def safe_get_json(cache: CacheStore, key: str) -> Any | None:
    """Cache read for fallback paths: a broken cache counts as an empty one."""
    try:
        return cache.get_json(key)
    except CachePersistenceError as exc:
        logger.warning("Cache read for %s failed: %s", key, exc)
        return None


def safe_set_json(cache: CacheStore, key: str, value: Any) -> bool:
    try:
        cache.set_json(key, value)
        return True
    except CachePersistenceError as exc:
        logger.warning("Cache write for %s failed: %s", key, exc)
        return False


def read_through(
    fetch: Callable[[], T | None],
    cache: CacheStore,
    key: str,
    encode: Callable[[T], Any],
    decode: Callable[[Any], T],
) -> ReadResult[T]:
    """
    Two-tier read: chain first, cache second.

    A successful fetch overwrites the cache entry. A fetch returning None is a
    confirmed absence and leaves the cache alone. A failed fetch falls back to
    the cached snapshot, or reports FAILED when there is none.
    """
    try:
        value = fetch()
    except BallotChainError as chain_error:
        logger.warning("Chain read for %s failed, trying cache: %s", key, chain_error)
        cached = safe_get_json(cache, key)
        if cached is None:
            return ReadResult.failed(chain_error)
        try:
            return ReadResult.found(decode(cached), DataSource.CACHE)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Cached entry %s is unreadable: %s", key, exc)
            return ReadResult.failed(DecodeError(f"Unreadable cache entry {key}"))

    if value is None:
        return ReadResult.not_found()
    safe_set_json(cache, key, encode(value))
    return ReadResult.found(value, DataSource.CHAIN)
