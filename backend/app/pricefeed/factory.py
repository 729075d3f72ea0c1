"""Factory for creating the price feed service."""

from __future__ import annotations

import logging

import httpx

from .binance import BinanceRestSource
from .clock import Clock
from .coingecko import CoinGeckoSource
from .config import PriceFeedSettings
from .interface import PriceSource
from .service import PriceFeedService
from .ticker_stream import Connector

logger = logging.getLogger(__name__)

USER_AGENT = "crypto-pricefeed/0.1"


def build_sources(
    client: httpx.AsyncClient,
    settings: PriceFeedSettings,
    clock: Clock | None = None,
) -> list[PriceSource]:
    """Upstream sources in priority order. Empty when running offline."""
    if settings.offline:
        return []
    return [
        CoinGeckoSource(
            client,
            base_url=settings.coingecko_base_url,
            api_key=settings.coingecko_api_key,
            clock=clock,
        ),
        BinanceRestSource(client, base_url=settings.binance_rest_url, clock=clock),
    ]


def create_price_feed_service(
    settings: PriceFeedSettings | None = None,
    client: httpx.AsyncClient | None = None,
    clock: Clock | None = None,
    connector: Connector | None = None,
) -> PriceFeedService:
    """Create an uninitialized service from settings (default: environment).

    - PRICEFEED_OFFLINE set -> no sources, no stream; every fetch is fallback
    - Otherwise -> CoinGecko, then Binance REST; Binance ticker stream

    Caller must await service.init().
    """
    settings = settings or PriceFeedSettings.from_env()
    client = client or httpx.AsyncClient(
        timeout=settings.http_timeout,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )
    sources = build_sources(client, settings, clock)

    if sources:
        logger.info("Price sources: %s", ", ".join(s.name for s in sources))
    else:
        logger.info("Price sources: none (offline fallback mode)")

    return PriceFeedService(settings, client, sources, clock=clock, connector=connector)
