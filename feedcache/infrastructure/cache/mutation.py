"""
Partial Mutation Propagator

Applies a single-record update (a like, a new reply...) to every cached
collection that embeds the record, in every tier, without invalidating the
collections. Expiry of patched entries is unchanged and no entry is ever
created.
"""

import time
from collections.abc import Callable, Iterable
from typing import Any

from feedcache.core.config.constants import COUNTER_FIELDS, RECORD_ID_FIELD, CacheTier, Stage
from feedcache.core.interfaces import CacheTierBackend, KeyPredicate
from feedcache.core.logging.logger import get_logger, log_stage
from feedcache.core.models import CacheEntry
from feedcache.infrastructure.cache.base import report_tier_failure
from feedcache.infrastructure.cache.persistent_tier import CountOverrideStore

logger = get_logger(__name__)

RecordUpdater = Callable[[dict[str, Any]], dict[str, Any]]


def namespace_matcher(*namespaces: str) -> KeyPredicate:
    """
    Predicate matching keys built from any of ``namespaces``.

        >>> matches = namespace_matcher("home-feed", "user-tweets")
        >>> matches("home-feed-limit:10"), matches("tweet-detail-id:1")
        (True, False)
    """
    def matches(key: str) -> bool:
        return any(key == namespace or key.startswith(f"{namespace}-") for namespace in namespaces)

    return matches


class MutationPropagator:
    """
    Patches matching collections across tiers.

    Counter changes are also recorded as a count override so a collection
    that is later read back from the persistent tier in an older form still
    shows the new counts.
    """

    def __init__(
        self,
        tiers: Iterable[CacheTierBackend],
        overrides: CountOverrideStore | None = None,
        counter_fields: Iterable[str] = COUNTER_FIELDS,
        clock: Callable[[], float] = time.time,
    ):
        self._tiers = list(tiers)
        self._overrides = overrides
        self._counter_fields = tuple(counter_fields)
        self._clock = clock

    async def patch_collections(
        self,
        matches_namespace: KeyPredicate,
        record_id: Any,
        updater: RecordUpdater,
    ) -> int:
        """
        Replace every record with ``id == record_id`` by ``updater(record)``
        in every sequence-valued entry whose key matches.

        Returns:
            int: Number of entries patched (summed over tiers)
        """
        patched = 0
        newest: tuple[float, dict[str, Any], dict[str, Any]] | None = None

        for backend in self._tiers:
            try:
                keys = [key for key in await backend.keys() if matches_namespace(key)]
                for key in keys:
                    entry = await backend.get(key)
                    if entry is None or not isinstance(entry.value, list):
                        continue

                    records, before, after = self._patch_records(entry.value, record_id, updater)
                    if after is None:
                        continue

                    if await self._store(backend, key, entry.with_value(records)):
                        patched += 1
                    if newest is None or entry.stored_at > newest[0]:
                        newest = (entry.stored_at, before, after)
            except Exception as e:
                report_tier_failure(logger, backend.tier, "patch", e, record_id=str(record_id))

        if newest is not None:
            self._record_counts(record_id, newest[1], newest[2])

        log_stage(
            logger,
            Stage.PATCH,
            "Patched cached collections",
            record_id=str(record_id),
            patched_entries=patched,
        )
        return patched

    @staticmethod
    def _patch_records(
        records: list[Any], record_id: Any, updater: RecordUpdater
    ) -> tuple[list[Any], dict[str, Any] | None, dict[str, Any] | None]:
        """Return the patched list plus the last matching record before/after the update."""
        before = after = None
        patched = []
        for record in records:
            if isinstance(record, dict) and record.get(RECORD_ID_FIELD) == record_id:
                # Updater gets a copy; cached records may be shared by reference
                before, after = record, updater(dict(record))
                record = after
            patched.append(record)
        return patched, before, after

    @staticmethod
    async def _store(backend: CacheTierBackend, key: str, entry: CacheEntry) -> bool:
        # Memory tier keeps the entry's eviction position
        if backend.tier == CacheTier.MEMORY and hasattr(backend, "replace"):
            return await backend.replace(key, entry)
        return await backend.set(key, entry)

    def _record_counts(self, record_id: Any, before: dict[str, Any], after: dict[str, Any]) -> None:
        if self._overrides is None:
            return
        counts = {name: after[name] for name in self._counter_fields if name in after}
        if any(before.get(name) != value for name, value in counts.items()):
            self._overrides.put(record_id, counts, self._clock())
