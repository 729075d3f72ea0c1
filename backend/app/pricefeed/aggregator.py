"""Pull side of the price feed: cached, ranked, never-failing snapshot fetches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np

from .cache import SnapshotCache
from .clock import Clock, LoopClock
from .errors import NoDataAvailable, PriceFeedError
from .fallback_prices import has_fallback
from .interface import PriceSource, first_success
from .models import CacheKey, PriceSnapshot, Provenance, Quote
from .synthetic import build_fallback_snapshot, generate_history

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
MAX_WINDOW_DAYS = 365


def normalize_window(window_days: Any) -> int:
    """Coerce a requested window to 1..MAX_WINDOW_DAYS days."""
    try:
        days = int(window_days)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_WINDOW_DAYS
    return min(max(days, 1), MAX_WINDOW_DAYS)


class PriceAggregator:
    """Serves PriceSnapshots from cache, upstream sources, or static fallbacks.

    Resolution order for ``get_price_snapshot(asset, days)``:
      1. Fresh cache entry (younger than the freshness window), as-is
      2. Live quote + history from the first source that answers
      3. Any older cache entry, re-tagged ``stale_cache``
      4. Synthetic snapshot from fallback constants, tagged ``fallback``
         and, for listed assets, cached so the next calls in the window agree

    Unexpected internal errors produce an uncached ``error_fallback``
    snapshot. Nothing is ever raised to the caller.
    """

    def __init__(
        self,
        cache: SnapshotCache,
        sources: Sequence[PriceSource],
        clock: Clock | None = None,
        freshness_seconds: float = 30.0,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._cache = cache
        self._sources = list(sources)
        self._clock = clock or LoopClock()
        self._freshness_ms = int(freshness_seconds * 1000)
        self._rng = rng or np.random.default_rng()
        self._in_flight: dict[CacheKey, asyncio.Task[PriceSnapshot]] = {}

    @property
    def sources(self) -> list[PriceSource]:
        return list(self._sources)

    async def get_price_snapshot(self, asset_id: str, window_days: int = DEFAULT_WINDOW_DAYS) -> PriceSnapshot:
        key = CacheKey(asset_id, normalize_window(window_days))
        entry = self._cache.get(key)
        if entry is not None and self._cache.is_fresh(entry, self._clock.now_ms(), self._freshness_ms):
            logger.debug("Returning cached data for %s/%dd", asset_id, key.window_days)
            return entry.snapshot

        # Concurrent callers for the same key share one upstream fetch
        fetch = self._in_flight.get(key)
        if fetch is None:
            fetch = asyncio.create_task(self._fetch(key), name=f"price-fetch-{asset_id}-{key.window_days}d")
            self._in_flight[key] = fetch
            fetch.add_done_callback(lambda _: self._in_flight.pop(key, None))
        # A cancelled caller leaves the shared fetch running for the others
        return await asyncio.shield(fetch)

    async def get_price_snapshots(
        self, asset_ids: Iterable[str], window_days: int = DEFAULT_WINDOW_DAYS
    ) -> dict[str, PriceSnapshot]:
        """Fetch several assets concurrently. Keys follow the input order."""
        ids = list(dict.fromkeys(asset_ids))
        results = await asyncio.gather(*(self.get_price_snapshot(a, window_days) for a in ids))
        return dict(zip(ids, results))

    # --- Internal ---

    async def _fetch(self, key: CacheKey) -> PriceSnapshot:
        try:
            return await self._resolve(key)
        except Exception:
            logger.exception("Price fetch for %s failed unexpectedly; serving error fallback", key.asset_id)
            return build_fallback_snapshot(
                key.asset_id,
                key.window_days,
                self._clock.now_ms(),
                provenance=Provenance.ERROR_FALLBACK,
                rng=self._rng,
            )

    async def _resolve(self, key: CacheKey) -> PriceSnapshot:
        asset_id, days = key.asset_id, key.window_days
        try:
            quote, source = await first_success(
                self._sources,
                lambda s: s.fetch_quote(asset_id),
                f"{asset_id} quote",
            )
        except NoDataAvailable as e:
            logger.warning("Live quote unavailable for %s: %s", asset_id, e)
            return self._serve_without_quote(key)

        series = await self._history(asset_id, days, quote, source)
        snapshot = PriceSnapshot(
            asset_id=asset_id,
            price_usd=quote.price,
            change_24h_pct=quote.change_24h,
            volume_24h_usd=quote.volume_24h,
            market_cap_usd=quote.market_cap,
            historical_series=tuple(series),
            fetched_at_ms=self._clock.now_ms(),
            provenance=Provenance.LIVE,
        )
        self._cache.put(key, snapshot)
        logger.info(
            "Fetched %s via %s: $%s, historical points: %d",
            asset_id,
            source.name,
            snapshot.price_usd,
            len(snapshot.historical_series),
        )
        return snapshot

    async def _history(self, asset_id: str, days: int, quote: Quote, quoted_by: PriceSource) -> list[float]:
        """History from the quoting source first, then the rest in rank order.

        If nothing answers, a synthetic series anchored to the live price keeps
        the snapshot's shape valid.
        """
        ranked = [quoted_by] + [s for s in self._sources if s is not quoted_by]
        try:
            series, _ = await first_success(
                ranked,
                lambda s: s.fetch_history(asset_id, days),
                f"{asset_id} {days}d history",
            )
            return series
        except PriceFeedError as e:
            logger.warning("Synthesizing history for %s anchored to live price: %s", asset_id, e)
            return generate_history(quote.price, days, self._rng)

    def _serve_without_quote(self, key: CacheKey) -> PriceSnapshot:
        # Any earlier entry for the key, however old
        entry = self._cache.get(key)
        if entry is not None:
            logger.info("Using stale cache for %s due to upstream failure", key.asset_id)
            return entry.snapshot.with_provenance(Provenance.STALE_CACHE)

        snapshot = build_fallback_snapshot(key.asset_id, key.window_days, self._clock.now_ms(), rng=self._rng)
        # Unknown ids share the default constants and are never cached
        if has_fallback(key.asset_id):
            self._cache.put(key, snapshot)
        logger.info("Using fallback data for %s: $%s", key.asset_id, snapshot.price_usd)
        return snapshot
