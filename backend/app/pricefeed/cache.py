"""In-memory snapshot cache."""

from __future__ import annotations

from collections import OrderedDict

from .models import CacheEntry, CacheKey, PriceSnapshot

DEFAULT_MAX_ENTRIES = 1024


class SnapshotCache:
    """Last-known-good snapshot for each (asset, window) pair.

    Entries are only overwritten by the next successful fetch, or evicted
    oldest-stored-first once more than ``max_entries`` keys are held. The
    tracked assets times the common window sizes fit well under the default
    cap. All access happens on the event loop thread, so no lock is taken.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._max_entries = max(max_entries, 1)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: CacheKey) -> CacheEntry | None:
        """Entry for a key regardless of age, or None if never stored."""
        return self._entries.get(key)

    def put(self, key: CacheKey, snapshot: PriceSnapshot, inserted_at_ms: int | None = None) -> CacheEntry:
        """Store a snapshot, replacing any previous entry for the key."""
        ts = inserted_at_ms if inserted_at_ms is not None else snapshot.fetched_at_ms
        entry = CacheEntry(snapshot=snapshot, inserted_at_ms=ts)
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        return entry

    @staticmethod
    def is_fresh(entry: CacheEntry, now_ms: int, freshness_ms: int) -> bool:
        """True while the entry is younger than the freshness window."""
        return now_ms - entry.inserted_at_ms < freshness_ms

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries
