"""CoinGecko REST client: the primary quote and history source."""

from __future__ import annotations

from typing import Any

import httpx

from .clock import Clock
from .errors import MalformedResponse, NoDataAvailable
from .interface import RestPriceSource
from .models import Quote

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"


def _number(value: Any, field: str, source: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"{field} is not a number: {value!r}", source=source)
    return float(value)


def parse_quote(data: Any, asset_id: str, source: str = "coingecko") -> Quote:
    """Parse ``{id: {usd, usd_24h_change, usd_24h_vol, usd_market_cap}}``."""
    if not isinstance(data, dict):
        raise MalformedResponse("quote body is not an object", source=source)
    entry = data.get(asset_id)
    if not entry:
        raise NoDataAvailable(f"no quote for {asset_id}", source=source)
    if not isinstance(entry, dict):
        raise MalformedResponse(f"quote for {asset_id} is not an object", source=source)

    price = _number(entry.get("usd"), "usd", source)
    if "usd" not in entry or price < 0:
        raise MalformedResponse(f"missing or negative usd price for {asset_id}", source=source)

    return Quote(
        price=price,
        change_24h=_number(entry.get("usd_24h_change"), "usd_24h_change", source),
        volume_24h=_number(entry.get("usd_24h_vol"), "usd_24h_vol", source),
        market_cap=_number(entry.get("usd_market_cap"), "usd_market_cap", source),
    )


def parse_history(data: Any, source: str = "coingecko") -> list[float]:
    """Parse ``{prices: [[timestamp_ms, price], ...]}`` into a list of prices."""
    if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
        raise MalformedResponse("history body has no prices list", source=source)
    try:
        series = [float(row[1]) for row in data["prices"]]
    except (TypeError, ValueError, IndexError) as e:
        raise MalformedResponse(f"bad history row: {e}", source=source) from e
    if not series:
        raise NoDataAvailable("empty history", source=source)
    return series


class CoinGeckoSource(RestPriceSource):
    """Quotes from /simple/price, daily history from /coins/{id}/market_chart.

    Free tier rate limits are tight (roughly 10-30 req/min), so 429s are
    expected and handled by the retry loop.
    """

    name = "coingecko"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        clock: Clock | None = None,
        **retry_options: Any,
    ) -> None:
        super().__init__(client, base_url, clock=clock, **retry_options)
        self._api_key = api_key

    def _headers(self) -> dict[str, str] | None:
        # Demo (free) keys use this header; pro keys would use x-cg-pro-api-key
        if self._api_key:
            return {"x-cg-demo-api-key": self._api_key}
        return None

    async def fetch_quote(self, asset_id: str) -> Quote:
        params = {
            "ids": asset_id,
            "vs_currencies": "usd",
            "include_24hr_change": "true",
            "include_24hr_vol": "true",
            "include_market_cap": "true",
        }
        return await self._get_json(
            "/simple/price",
            params,
            self._quote_retries,
            lambda data: parse_quote(data, asset_id, self.name),
        )

    async def fetch_history(self, asset_id: str, days: int) -> list[float]:
        params = {"vs_currency": "usd", "days": days, "interval": "daily"}
        return await self._get_json(
            f"/coins/{asset_id}/market_chart",
            params,
            self._history_retries,
            lambda data: parse_history(data, self.name),
        )
