"""Pull-based refresh used while the ticker stream is down."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .aggregator import PriceAggregator
from .fallback_prices import ASSET_TO_SYMBOL
from .models import StreamTick

logger = logging.getLogger(__name__)


class PollingFallback:
    """Polls the aggregator on an interval whenever the stream is not connected.

    Each snapshot is re-published as a StreamTick, so consumers keep a single
    tick subscription whichever path the data takes. While the stream is
    connected, each cycle is skipped.
    """

    def __init__(
        self,
        aggregator: PriceAggregator,
        is_connected: Callable[[], bool],
        publish: Callable[[StreamTick], None],
        assets: list[str],
        poll_interval: float = 60.0,
        window_days: int = 30,
    ) -> None:
        self._aggregator = aggregator
        self._is_connected = is_connected
        self._publish = publish
        self._assets = list(assets)
        self._interval = poll_interval
        self._window_days = window_days
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._poll_loop(), name="price-poller")
        logger.info(
            "Polling fallback started: %d assets, %.1fs interval",
            len(self._assets),
            self._interval,
        )

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Polling fallback stopped")

    def get_assets(self) -> list[str]:
        return list(self._assets)

    # --- Internal ---

    async def _poll_loop(self) -> None:
        """Poll immediately, then on every interval."""
        while True:
            await self._poll_once()
            await asyncio.sleep(self._interval)

    async def _poll_once(self) -> int:
        """Run one cycle. Returns the number of ticks published."""
        if not self._assets or self._is_connected():
            return 0

        try:
            snapshots = await self._aggregator.get_price_snapshots(self._assets, self._window_days)
            for asset_id, snapshot in snapshots.items():
                self._publish(
                    StreamTick(
                        asset_id=asset_id,
                        price_usd=snapshot.price_usd,
                        change_24h_pct=snapshot.change_24h_pct,
                        ts_ms=snapshot.fetched_at_ms,
                        symbol=ASSET_TO_SYMBOL.get(asset_id, ""),
                    )
                )
            logger.debug("Polled %d assets while stream is down", len(snapshots))
            return len(snapshots)
        except Exception:
            # Keep polling; the next interval may succeed
            logger.exception("Price poll failed")
            return 0
