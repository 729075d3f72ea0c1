"""Environment-driven settings for the price feed."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .binance import DEFAULT_REST_URL, DEFAULT_WS_URL
from .coingecko import DEFAULT_BASE_URL as COINGECKO_BASE_URL
from .fallback_prices import TRACKED_ASSETS

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True, slots=True)
class PriceFeedSettings:
    """All tunables, read once at startup.

    Environment variables:
      PRICEFEED_OFFLINE           any truthy value: no upstream calls, fallback data only
      COINGECKO_BASE_URL          primary REST source
      COINGECKO_API_KEY           optional demo key
      BINANCE_REST_URL            secondary REST source
      BINANCE_WS_URL              streaming ticker endpoint
      PRICEFEED_FRESHNESS_SECONDS cache freshness window (default 30)
      PRICEFEED_POLL_INTERVAL     polling fallback interval (default 60)
      PRICEFEED_HTTP_TIMEOUT      per-request timeout (default 10)
      PRICEFEED_TRACKED_ASSETS    comma-separated asset ids to poll
      PRICEFEED_LOG_LEVEL         root log level (default INFO)
    """

    offline: bool = False
    coingecko_base_url: str = COINGECKO_BASE_URL
    coingecko_api_key: str | None = None
    binance_rest_url: str = DEFAULT_REST_URL
    binance_ws_url: str = DEFAULT_WS_URL
    freshness_seconds: float = 30.0
    poll_interval: float = 60.0
    http_timeout: float = 10.0
    tracked_assets: tuple[str, ...] = field(default_factory=lambda: tuple(TRACKED_ASSETS))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PriceFeedSettings:
        env = os.environ if environ is None else environ
        assets = tuple(a.strip().lower() for a in env.get("PRICEFEED_TRACKED_ASSETS", "").split(",") if a.strip())
        return cls(
            offline=env.get("PRICEFEED_OFFLINE", "").strip().lower() in _TRUTHY,
            coingecko_base_url=env.get("COINGECKO_BASE_URL", "").strip() or COINGECKO_BASE_URL,
            coingecko_api_key=env.get("COINGECKO_API_KEY", "").strip() or None,
            binance_rest_url=env.get("BINANCE_REST_URL", "").strip() or DEFAULT_REST_URL,
            binance_ws_url=env.get("BINANCE_WS_URL", "").strip() or DEFAULT_WS_URL,
            freshness_seconds=_float(env, "PRICEFEED_FRESHNESS_SECONDS", 30.0),
            poll_interval=_float(env, "PRICEFEED_POLL_INTERVAL", 60.0),
            http_timeout=_float(env, "PRICEFEED_HTTP_TIMEOUT", 10.0),
            tracked_assets=assets or tuple(TRACKED_ASSETS),
            log_level=env.get("PRICEFEED_LOG_LEVEL", "").strip().upper() or "INFO",
        )
