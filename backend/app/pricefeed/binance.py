"""Binance public REST endpoints, used as the secondary quote and history source."""

from __future__ import annotations

from typing import Any

import httpx

from .clock import Clock
from .errors import MalformedResponse, NoDataAvailable
from .fallback_prices import ASSET_TO_SYMBOL
from .interface import RestPriceSource
from .models import Quote

DEFAULT_REST_URL = "https://api.binance.com"
DEFAULT_WS_URL = "wss://stream.binance.com:9443/ws/!ticker@arr"

MAX_KLINES = 1000  # Binance caps klines per request


def parse_ticker_24h(data: Any, source: str = "binance") -> Quote:
    """Parse a /api/v3/ticker/24hr object. Binance sends numbers as strings."""
    if not isinstance(data, dict):
        raise MalformedResponse("ticker body is not an object", source=source)
    try:
        price = float(data["lastPrice"])
        change = float(data.get("priceChangePercent") or 0.0)
        volume = float(data.get("quoteVolume") or 0.0)
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"bad ticker payload: {e!r}", source=source) from e
    if price < 0:
        raise MalformedResponse(f"negative price {price}", source=source)
    # Market cap is not published by the exchange
    return Quote(price=price, change_24h=change, volume_24h=volume, market_cap=0.0)


def parse_klines(data: Any, source: str = "binance") -> list[float]:
    """Closing prices (column 4) from a /api/v3/klines array."""
    if not isinstance(data, list):
        raise MalformedResponse("klines body is not an array", source=source)
    try:
        series = [float(row[4]) for row in data]
    except (TypeError, ValueError, IndexError) as e:
        raise MalformedResponse(f"bad kline row: {e!r}", source=source) from e
    if not series:
        raise NoDataAvailable("no klines returned", source=source)
    return series


class BinanceRestSource(RestPriceSource):
    """Quotes from the 24h ticker and daily closes from klines.

    Only assets in the exchange symbol table are supported. Anything else
    fails fast with NoDataAvailable, without a network call.
    """

    name = "binance"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_REST_URL,
        clock: Clock | None = None,
        **retry_options: Any,
    ) -> None:
        super().__init__(client, base_url, clock=clock, **retry_options)

    def _symbol(self, asset_id: str) -> str:
        symbol = ASSET_TO_SYMBOL.get(asset_id)
        if symbol is None:
            raise NoDataAvailable(f"no exchange symbol for {asset_id}", source=self.name)
        return symbol

    async def fetch_quote(self, asset_id: str) -> Quote:
        symbol = self._symbol(asset_id)
        return await self._get_json(
            "/api/v3/ticker/24hr",
            {"symbol": symbol},
            self._quote_retries,
            lambda data: parse_ticker_24h(data, self.name),
        )

    async def fetch_history(self, asset_id: str, days: int) -> list[float]:
        symbol = self._symbol(asset_id)
        params = {"symbol": symbol, "interval": "1d", "limit": min(days + 1, MAX_KLINES)}
        return await self._get_json(
            "/api/v3/klines",
            params,
            self._history_retries,
            lambda data: parse_klines(data, self.name),
        )
