"""
Persistent Tier

Device-local storage that survives restarts. Entries live in a single
key/value SQLite table, namespaced the way browser local storage is:

    key:   "<namespace>-cache-<cache_key>"
    value: orjson envelope {"data", "expires", "stored_at", "kind", "source"}

Count overrides for records embedded in cached collections share the table
under "<namespace>-count-<record_id>".

Reads return expired entries so the stale fallback can use them. Rows that
have been expired for longer than the retention window are purged when the
tier is opened.

SQLite calls are synchronous and short; they run inline on the event loop.
"""

import sqlite3
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import orjson

from feedcache.core.config.constants import (
    COUNTER_FIELDS,
    PERSISTENT_CACHE_INFIX,
    PERSISTENT_COUNT_INFIX,
    RECORD_ID_FIELD,
    CacheTier,
    Stage,
)
from feedcache.core.interfaces import KeyPredicate
from feedcache.core.logging.logger import get_logger, log_stage
from feedcache.core.models import CacheEntry, CountOverride
from feedcache.infrastructure.cache.base import report_tier_failure

logger = get_logger(__name__)

IN_MEMORY_DATABASE = ":memory:"
SQLITE_BATCH_SIZE = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    expires_at REAL NOT NULL
)
"""


class PersistentTier:
    """
    SQLite-backed entry store.

    Example:
        >>> tier = PersistentTier("cache.db", namespace="feed")
        >>> await tier.set("home-feed-limit:10", entry)
        >>> entry = await tier.get("home-feed-limit:10")
        >>> tier.close()
    """

    tier = CacheTier.PERSISTENT

    def __init__(
        self,
        db_path: Path | str,
        namespace: str = "feed",
        retention: float = 86400,
        counter_fields: Iterable[str] = COUNTER_FIELDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            db_path: SQLite file path (or ":memory:")
            namespace: Prefix separating this store from other users of the file
            retention: Seconds an expired row is kept for stale reads
            counter_fields: Record fields reconciled from count overrides
            clock: Time source in epoch seconds
        """
        self.db_path = db_path if str(db_path) == IN_MEMORY_DATABASE else Path(db_path)
        self.namespace = namespace
        self._cache_prefix = f"{namespace}{PERSISTENT_CACHE_INFIX}"
        self._count_prefix = f"{namespace}{PERSISTENT_COUNT_INFIX}"
        self._retention = retention
        self._clock = clock
        self._conn: sqlite3.Connection | None = None

        self.overrides = CountOverrideStore(self, counter_fields)
        self._open()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _open(self) -> None:
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Auto-commit mode
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            report_tier_failure(logger, self.tier, "open", e, db_path=str(self.db_path))
            self._conn = None
            return

        purged = self._purge_rows(before=self._clock() - self._retention)
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Persistent tier opened",
            db_path=str(self.db_path),
            namespace=self.namespace,
            purged_on_open=purged,
        )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def is_open(self) -> bool:
        return self._conn is not None

    # -------------------------------------------------------------------------
    # Raw row access (shared with CountOverrideStore)
    # -------------------------------------------------------------------------

    def _read_rows(self, storage_keys: list[str]) -> dict[str, bytes]:
        rows: dict[str, bytes] = {}
        if self._conn is None:
            return rows
        for start in range(0, len(storage_keys), SQLITE_BATCH_SIZE):
            batch = storage_keys[start:start + SQLITE_BATCH_SIZE]
            placeholders = ",".join("?" * len(batch))
            cursor = self._conn.execute(
                f"SELECT key, value FROM kv_store WHERE key IN ({placeholders})", batch
            )
            rows.update(cursor.fetchall())
        return rows

    def _write_row(self, storage_key: str, blob: bytes, expires_at: float) -> None:
        if self._conn is None:
            raise sqlite3.OperationalError("persistent store is not open")
        self._conn.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, expires_at) VALUES (?, ?, ?)",
            (storage_key, blob, expires_at),
        )

    def _cache_keys(self) -> list[str]:
        if self._conn is None:
            return []
        cursor = self._conn.execute(
            "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ?",
            (len(self._cache_prefix), self._cache_prefix),
        )
        return [row[0] for row in cursor.fetchall()]

    def _purge_rows(self, before: float, prefix: str | None = None) -> int:
        """Delete rows under ``prefix`` (default: the whole namespace) expired at ``before``."""
        if self._conn is None:
            return 0
        prefix = prefix or f"{self.namespace}-"
        try:
            cursor = self._conn.execute(
                "DELETE FROM kv_store WHERE substr(key, 1, ?) = ? AND expires_at <= ?",
                (len(prefix), prefix, before),
            )
            return cursor.rowcount
        except sqlite3.Error as e:
            report_tier_failure(logger, self.tier, "purge", e)
            return 0

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def _storage_key(self, key: str) -> str:
        return f"{self._cache_prefix}{key}"

    @staticmethod
    def _encode(entry: CacheEntry) -> bytes:
        return orjson.dumps(
            {
                "data": entry.value,
                "expires": entry.expires_at,
                "stored_at": entry.stored_at,
                "kind": entry.kind,
                "source": entry.source,
            }
        )

    @staticmethod
    def _decode(key: str, blob: bytes) -> CacheEntry:
        envelope = orjson.loads(blob)
        return CacheEntry(
            key=key,
            value=envelope["data"],
            stored_at=envelope["stored_at"],
            expires_at=envelope["expires"],
            kind=envelope.get("kind"),
            source=envelope.get("source"),
        )

    # -------------------------------------------------------------------------
    # Tier operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> CacheEntry | None:
        storage_key = self._storage_key(key)
        try:
            blob = self._read_rows([storage_key]).get(storage_key)
            if blob is None:
                return None
            entry = self._decode(key, blob)
        except (sqlite3.Error, orjson.JSONDecodeError, KeyError, ValueError) as e:
            report_tier_failure(logger, self.tier, "get", e, cache_key=key)
            return None

        return self.overrides.reconcile(entry)

    async def set(self, key: str, entry: CacheEntry) -> bool:
        try:
            self._write_row(self._storage_key(key), self._encode(entry), entry.expires_at)
            return True
        except (sqlite3.Error, orjson.JSONEncodeError) as e:
            report_tier_failure(logger, self.tier, "set", e, cache_key=key)
            return False

    async def delete(self, key: str) -> bool:
        if self._conn is None:
            return False
        try:
            cursor = self._conn.execute(
                "DELETE FROM kv_store WHERE key = ?", (self._storage_key(key),)
            )
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            report_tier_failure(logger, self.tier, "delete", e, cache_key=key)
            return False

    async def delete_by_predicate(self, predicate: KeyPredicate) -> int:
        if self._conn is None:
            return 0
        offset = len(self._cache_prefix)
        try:
            doomed = [
                (storage_key,)
                for storage_key in self._cache_keys()
                if predicate(storage_key[offset:])
            ]
            if doomed:
                self._conn.executemany("DELETE FROM kv_store WHERE key = ?", doomed)
            return len(doomed)
        except sqlite3.Error as e:
            report_tier_failure(logger, self.tier, "delete_by_predicate", e)
            return 0

    async def delete_by_prefix(self, prefix: str) -> int:
        if self._conn is None:
            return 0
        storage_prefix = self._storage_key(prefix)
        try:
            cursor = self._conn.execute(
                "DELETE FROM kv_store WHERE substr(key, 1, ?) = ?",
                (len(storage_prefix), storage_prefix),
            )
            return cursor.rowcount
        except sqlite3.Error as e:
            report_tier_failure(logger, self.tier, "delete_by_prefix", e, prefix=prefix)
            return 0

    async def keys(self) -> list[str]:
        offset = len(self._cache_prefix)
        try:
            return [storage_key[offset:] for storage_key in self._cache_keys()]
        except sqlite3.Error as e:
            report_tier_failure(logger, self.tier, "keys", e)
            return []

    async def purge_expired(self, now: float) -> int:
        return self._purge_rows(before=now, prefix=self._cache_prefix)


class CountOverrideStore:
    """
    Newest known counter values per record, kept beside the persistent tier.

    Cached collections can embed counters (likes, replies...) that are older
    than a mutation the user just made. When an entry is read back from the
    persistent tier, every record whose override is newer than the entry
    takes the override's counters.
    """

    def __init__(self, tier: PersistentTier, counter_fields: Iterable[str] = COUNTER_FIELDS):
        self._tier = tier
        self.counter_fields = tuple(counter_fields)

    def _storage_key(self, record_id: Any) -> str:
        return f"{self._tier._count_prefix}{record_id}"

    def put(self, record_id: Any, counts: dict[str, int], updated_at: float) -> bool:
        """Record counters for ``record_id``; fields outside counter_fields are dropped."""
        override = CountOverride(
            record_id=str(record_id),
            counts={name: counts[name] for name in self.counter_fields if name in counts},
            updated_at=updated_at,
        )
        if not override.counts:
            return False
        try:
            # Age out together with expired cache rows
            self._tier._write_row(
                self._storage_key(record_id),
                orjson.dumps(override.model_dump()),
                override.updated_at,
            )
            return True
        except (sqlite3.Error, orjson.JSONEncodeError) as e:
            report_tier_failure(logger, self._tier.tier, "put_override", e, record_id=str(record_id))
            return False

    def get_many(self, record_ids: Iterable[Any]) -> dict[str, CountOverride]:
        ids = {str(record_id) for record_id in record_ids}
        if not ids:
            return {}
        storage_keys = [self._storage_key(record_id) for record_id in ids]
        overrides = {}
        try:
            for blob in self._tier._read_rows(storage_keys).values():
                override = CountOverride.model_validate(orjson.loads(blob))
                overrides[override.record_id] = override
        except (sqlite3.Error, orjson.JSONDecodeError, ValueError) as e:
            report_tier_failure(logger, self._tier.tier, "get_overrides", e)
            return {}
        return overrides

    def get(self, record_id: Any) -> CountOverride | None:
        return self.get_many([record_id]).get(str(record_id))

    def reconcile(self, entry: CacheEntry) -> CacheEntry:
        """
        Apply overrides newer than ``entry`` to the records of a sequence value.

        Non-sequence values and records without an override are returned as-is.
        """
        if not isinstance(entry.value, list):
            return entry

        record_ids = [
            item[RECORD_ID_FIELD]
            for item in entry.value
            if isinstance(item, dict) and RECORD_ID_FIELD in item
        ]
        overrides = self.get_many(record_ids)
        if not overrides:
            return entry

        changed = False
        records = []
        for item in entry.value:
            override = None
            if isinstance(item, dict) and RECORD_ID_FIELD in item:
                override = overrides.get(str(item[RECORD_ID_FIELD]))
            if override is not None and override.updated_at > entry.stored_at:
                item = {**item, **override.counts}
                changed = True
            records.append(item)

        return entry.with_value(records) if changed else entry
