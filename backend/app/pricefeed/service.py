"""The price feed as one owned object with an explicit lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

import httpx
import numpy as np

from .aggregator import DEFAULT_WINDOW_DAYS, PriceAggregator
from .cache import SnapshotCache
from .clock import Clock, LoopClock
from .config import PriceFeedSettings
from .interface import PriceSource
from .models import ConnectionState, PriceSnapshot, StreamTick
from .poller import PollingFallback
from .ticker_stream import Connector, TickerStream

logger = logging.getLogger(__name__)


class PriceFeedService:
    """Owns the cache, HTTP client, sources, aggregator, stream and poller.

    Nothing here is module-global, so tests can build as many isolated
    instances as they like.

    Lifecycle:
        service = create_price_feed_service()
        await service.init()      # opens the stream, starts the poller
        snapshot = await service.get_price_snapshot("bitcoin", 30)
        unsubscribe = service.on_tick(handle_tick)
        await service.dispose()   # stops everything, closes the HTTP client

    A disposed service cannot be re-initialized; build a new one.
    """

    def __init__(
        self,
        settings: PriceFeedSettings,
        client: httpx.AsyncClient,
        sources: list[PriceSource],
        clock: Clock | None = None,
        connector: Connector | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._clock = clock or LoopClock()
        self.cache = SnapshotCache()
        self.aggregator = PriceAggregator(
            self.cache,
            sources,
            clock=self._clock,
            freshness_seconds=settings.freshness_seconds,
            rng=rng,
        )
        self.stream = TickerStream(url=settings.binance_ws_url, clock=self._clock, connector=connector)
        self.poller = PollingFallback(
            self.aggregator,
            is_connected=lambda: self.stream.is_connected,
            publish=self.stream.publish,
            assets=list(settings.tracked_assets),
            poll_interval=settings.poll_interval,
        )
        self._initialized = False
        self._disposed = False

    @property
    def settings(self) -> PriceFeedSettings:
        return self._settings

    async def init(self) -> None:
        if self._disposed:
            raise RuntimeError("PriceFeedService has been disposed")
        if self._initialized:
            return
        self._initialized = True
        if self._settings.offline:
            logger.info("Price feed offline: streaming disabled, serving fallback data")
        else:
            await self.stream.start()
        await self.poller.start()

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        await self.poller.stop()
        await self.stream.stop()
        await self._client.aclose()
        logger.info("Price feed disposed")

    # --- Consumer API ---

    async def get_price_snapshot(self, asset_id: str, window_days: int = DEFAULT_WINDOW_DAYS) -> PriceSnapshot:
        return await self.aggregator.get_price_snapshot(asset_id, window_days)

    async def get_price_snapshots(
        self, asset_ids: Iterable[str], window_days: int = DEFAULT_WINDOW_DAYS
    ) -> dict[str, PriceSnapshot]:
        return await self.aggregator.get_price_snapshots(asset_ids, window_days)

    def on_tick(self, callback: Callable[[StreamTick], None]) -> Callable[[], None]:
        return self.stream.on_tick(callback)

    def get_connection_state(self) -> ConnectionState:
        return self.stream.get_connection_state()

    async def start(self) -> None:
        await self.stream.start()

    async def stop(self) -> None:
        await self.stream.stop()

    async def force_reconnect(self) -> None:
        await self.stream.force_reconnect()
