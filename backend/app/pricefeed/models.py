"""Data models for the price feed."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class Provenance(str, Enum):
    """How a snapshot's data was obtained."""

    LIVE = "live"
    STALE_CACHE = "stale_cache"
    FALLBACK = "fallback"
    ERROR_FALLBACK = "error_fallback"


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class Quote:
    """Current price and 24h stats as returned by a quote adapter."""

    price: float
    change_24h: float = 0.0
    volume_24h: float = 0.0
    market_cap: float = 0.0


@dataclass(frozen=True, slots=True)
class PriceSnapshot:
    """Immutable point-in-time price record for one asset and window."""

    asset_id: str
    price_usd: float
    change_24h_pct: float
    volume_24h_usd: float
    market_cap_usd: float
    historical_series: tuple[float, ...]
    fetched_at_ms: int
    provenance: Provenance

    def with_provenance(self, provenance: Provenance) -> PriceSnapshot:
        """Copy of this snapshot tagged with a different provenance."""
        return replace(self, provenance=provenance)

    def to_dict(self) -> dict:
        """Serialize in the shape the dashboard's price endpoint returns."""
        return {
            "coin": self.asset_id,
            "currentPrice": self.price_usd,
            "change24h": self.change_24h_pct,
            "volume24h": self.volume_24h_usd,
            "marketCap": self.market_cap_usd,
            "historicalPrices": list(self.historical_series),
            "timestamp": self.fetched_at_ms,
            "source": self.provenance.value,
        }


@dataclass(frozen=True, slots=True)
class StreamTick:
    """A single normalized ticker update. Consumed immediately, never stored."""

    asset_id: str
    price_usd: float
    change_24h_pct: float
    ts_ms: int
    symbol: str = ""

    def to_dict(self) -> dict:
        return {
            "assetId": self.asset_id,
            "symbol": self.symbol,
            "price": self.price_usd,
            "change24h": self.change_24h_pct,
            "timestamp": self.ts_ms,
        }


@dataclass(frozen=True, slots=True)
class ConnectionState:
    """Observable state of the streaming connection."""

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    reconnect_attempt: int = 0

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def to_dict(self) -> dict:
        return {"status": self.status.value, "reconnectAttempt": self.reconnect_attempt}


@dataclass(frozen=True, slots=True)
class CacheKey:
    asset_id: str
    window_days: int


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached snapshot plus the time it was stored (Unix ms)."""

    snapshot: PriceSnapshot
    inserted_at_ms: int = field(default=0)
