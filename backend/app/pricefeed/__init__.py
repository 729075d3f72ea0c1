"""Crypto price feed subsystem.

Public API:
    PriceSnapshot       - Immutable price record tagged with its provenance
    StreamTick          - Normalized live ticker update
    ConnectionState     - Observable state of the streaming connection
    SnapshotCache       - In-memory last-known-good snapshot store
    PriceAggregator     - Cached, ranked, never-failing snapshot fetcher
    TickerStream        - Reconnecting streaming ticker client
    PriceFeedService    - Owns all of the above with an init()/dispose() lifecycle
    create_price_feed_service - Factory that wires sources from the environment
    create_price_router - FastAPI router for the price and stream endpoints
"""

from .aggregator import PriceAggregator
from .api import create_price_router
from .cache import SnapshotCache
from .config import PriceFeedSettings
from .factory import create_price_feed_service
from .models import ConnectionState, ConnectionStatus, PriceSnapshot, Provenance, StreamTick
from .service import PriceFeedService
from .ticker_stream import TickerStream

__all__ = [
    "PriceSnapshot",
    "Provenance",
    "StreamTick",
    "ConnectionState",
    "ConnectionStatus",
    "SnapshotCache",
    "PriceAggregator",
    "TickerStream",
    "PriceFeedService",
    "PriceFeedSettings",
    "create_price_feed_service",
    "create_price_router",
]
