"""FastAPI application wiring for the price feed.

Run with:
    uvicorn app.main:create_app --factory
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .pricefeed import PriceFeedSettings, create_price_feed_service, create_price_router


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: PriceFeedSettings | None = None) -> FastAPI:
    settings = settings or PriceFeedSettings.from_env()
    configure_logging(settings.log_level)
    service = create_price_feed_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await service.init()
        app.state.price_feed = service
        try:
            yield
        finally:
            await service.dispose()

    app = FastAPI(title="Crypto price feed", lifespan=lifespan)
    app.include_router(create_price_router(service))
    return app
