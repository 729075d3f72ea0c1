"""Tests for SnapshotCache."""

from app.pricefeed.cache import SnapshotCache
from app.pricefeed.models import CacheKey, PriceSnapshot, Provenance


def _snapshot(price: float = 100.0, fetched_at_ms: int = 1_000) -> PriceSnapshot:
    return PriceSnapshot(
        asset_id="solana",
        price_usd=price,
        change_24h_pct=0.0,
        volume_24h_usd=0.0,
        market_cap_usd=0.0,
        historical_series=(price,),
        fetched_at_ms=fetched_at_ms,
        provenance=Provenance.LIVE,
    )


class TestSnapshotCache:
    """Unit tests for the SnapshotCache."""

    def test_get_missing_returns_none(self):
        cache = SnapshotCache()
        assert cache.get(CacheKey("solana", 30)) is None

    def test_put_and_get(self):
        cache = SnapshotCache()
        key = CacheKey("solana", 30)
        snapshot = _snapshot()

        entry = cache.put(key, snapshot)

        assert cache.get(key) is entry
        assert entry.snapshot is snapshot
        assert entry.inserted_at_ms == snapshot.fetched_at_ms

    def test_put_with_explicit_insert_time(self):
        cache = SnapshotCache()
        entry = cache.put(CacheKey("solana", 30), _snapshot(), inserted_at_ms=5_000)
        assert entry.inserted_at_ms == 5_000

    def test_put_overwrites(self):
        cache = SnapshotCache()
        key = CacheKey("solana", 30)
        cache.put(key, _snapshot(price=100.0))
        cache.put(key, _snapshot(price=120.0))

        assert cache.get(key).snapshot.price_usd == 120.0
        assert len(cache) == 1

    def test_window_is_part_of_key(self):
        cache = SnapshotCache()
        cache.put(CacheKey("solana", 7), _snapshot(price=1.0))
        cache.put(CacheKey("solana", 30), _snapshot(price=2.0))

        assert cache.get(CacheKey("solana", 7)).snapshot.price_usd == 1.0
        assert cache.get(CacheKey("solana", 30)).snapshot.price_usd == 2.0
        assert len(cache) == 2

    def test_is_fresh_boundary(self):
        cache = SnapshotCache()
        entry = cache.put(CacheKey("solana", 30), _snapshot(), inserted_at_ms=10_000)

        assert cache.is_fresh(entry, now_ms=10_000, freshness_ms=30_000)
        assert cache.is_fresh(entry, now_ms=39_999, freshness_ms=30_000)
        assert not cache.is_fresh(entry, now_ms=40_000, freshness_ms=30_000)

    def test_contains_and_clear(self):
        cache = SnapshotCache()
        key = CacheKey("solana", 30)
        cache.put(key, _snapshot())

        assert key in cache
        assert CacheKey("bitcoin", 30) not in cache

        cache.clear()
        assert len(cache) == 0

    def test_oldest_entry_evicted_past_cap(self):
        cache = SnapshotCache(max_entries=2)
        cache.put(CacheKey("solana", 7), _snapshot())
        cache.put(CacheKey("solana", 30), _snapshot())
        cache.put(CacheKey("solana", 90), _snapshot())

        assert len(cache) == 2
        assert CacheKey("solana", 7) not in cache
        assert CacheKey("solana", 90) in cache

    def test_overwrite_refreshes_eviction_order(self):
        cache = SnapshotCache(max_entries=2)
        cache.put(CacheKey("solana", 7), _snapshot())
        cache.put(CacheKey("solana", 30), _snapshot())
        cache.put(CacheKey("solana", 7), _snapshot(price=5.0))
        cache.put(CacheKey("solana", 90), _snapshot())

        assert CacheKey("solana", 7) in cache
        assert CacheKey("solana", 30) not in cache
