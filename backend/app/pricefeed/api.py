"""HTTP surface: price endpoint, connection status and SSE tick stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, field_validator

from .aggregator import DEFAULT_WINDOW_DAYS, normalize_window
from .models import StreamTick
from .service import PriceFeedService

logger = logging.getLogger(__name__)

MAX_QUEUED_TICKS = 1000
DEFAULT_COIN = "bitcoin"


class PriceRequest(BaseModel):
    """Body of ``POST /api/crypto-prices``. Each field falls back on its own."""

    coin: str = DEFAULT_COIN
    days: int = DEFAULT_WINDOW_DAYS

    @field_validator("coin", mode="before")
    @classmethod
    def normalize_coin(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            logger.warning("Invalid coin %r, using %s", value, DEFAULT_COIN)
            return DEFAULT_COIN
        return value.strip().lower()

    @field_validator("days", mode="before")
    @classmethod
    def normalize_days(cls, value: Any) -> int:
        return normalize_window(value)


async def _read_price_request(request: Request) -> PriceRequest:
    """Parse the JSON body, falling back to defaults on anything unusable."""
    try:
        data = await request.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    return PriceRequest.model_validate(data)


def create_price_router(service: PriceFeedService) -> APIRouter:
    """Create the router bound to one service instance."""
    router = APIRouter(prefix="/api", tags=["prices"])

    @router.post("/crypto-prices")
    async def crypto_prices(request: Request) -> dict:
        """Snapshot for ``{"coin": ..., "days": ...}``. Always answers 200.

        The ``source`` field tells the caller whether the data is live,
        a stale cache hit, or fallback constants.
        """
        body = await _read_price_request(request)
        snapshot = await service.get_price_snapshot(body.coin, body.days)
        return snapshot.to_dict()

    @router.get("/stream/status")
    async def stream_status() -> dict:
        return service.get_connection_state().to_dict()

    @router.get("/stream/ticks")
    async def stream_ticks(request: Request) -> StreamingResponse:
        """SSE endpoint for live ticks.

            data: {"assetId": "bitcoin", "symbol": "BTCUSDT", "price": 50000.0, ...}
        """
        return StreamingResponse(
            _generate_events(service, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    service: PriceFeedService,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Yield one SSE event per tick until the client disconnects.

    Ticks are queued from the stream callback; if the client falls too far
    behind, new ticks are dropped rather than buffered without bound.
    """
    queue: asyncio.Queue[StreamTick] = asyncio.Queue(maxsize=MAX_QUEUED_TICKS)

    def enqueue(tick: StreamTick) -> None:
        try:
            queue.put_nowait(tick)
        except asyncio.QueueFull:
            logger.debug("SSE queue full, dropping tick for %s", tick.asset_id)

    unsubscribe = service.on_tick(enqueue)
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break
            try:
                tick = await asyncio.wait_for(queue.get(), timeout=interval)
            except asyncio.TimeoutError:
                continue
            yield f"data: {json.dumps(tick.to_dict())}\n\n"
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
    finally:
        unsubscribe()
