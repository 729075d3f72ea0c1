"""Fixtures for price feed tests.

Upstream HTTP is replaced with ``httpx.MockTransport`` and the websocket with
an in-memory connection, so nothing here touches the network.
"""

import asyncio

import httpx
import numpy as np
import pytest
import pytest_asyncio

_END = object()


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self.close_code: int | None = None
        self.closed_with: tuple[int, str] | None = None

    def feed(self, message) -> None:
        self._queue.put_nowait(message)

    def drop(self, code: int = 1006) -> None:
        """Simulate the server side going away."""
        self.close_code = code
        self._queue.put_nowait(_END)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)
        if self.close_code is None:
            self.close_code = code
        self._queue.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Connector that hands out FakeConnections, or fails while ``fail`` is set."""

    def __init__(self) -> None:
        self.calls = 0
        self.fail = False
        self.connections: list[FakeConnection] = []

    async def __call__(self, url: str) -> FakeConnection:
        self.calls += 1
        if self.fail:
            raise OSError("connection refused")
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]


class Upstream:
    """Scriptable CoinGecko/Binance responder for MockTransport.

    Each route holds a list of responses consumed in order; the last one
    repeats. A response is a status code, a JSON-able body, or an exception.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list] = {}
        self.calls: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path: str, *responses) -> None:
        self.routes[path] = list(responses)

    def count(self, path: str) -> int:
        return self.calls.get(path, 0)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        self.calls[path] = self.calls.get(path, 0) + 1
        scripted = self.routes.get(path)
        if not scripted:
            raise httpx.ConnectError("unreachable", request=request)
        response = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, int):
            return httpx.Response(response, json={"error": "status"})
        if isinstance(response, (bytes, str)):
            return httpx.Response(200, content=response)
        return httpx.Response(200, json=response)


@pytest.fixture
def upstream():
    return Upstream()


@pytest_asyncio.fixture
async def http_client(upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    yield client
    await client.aclose()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def rng():
    return np.random.default_rng(42)


def coingecko_quote(asset_id: str = "bitcoin", usd: float = 50000.0) -> dict:
    return {
        asset_id: {
            "usd": usd,
            "usd_24h_change": 2.5,
            "usd_24h_vol": 1e9,
            "usd_market_cap": 1e12,
        }
    }


def coingecko_history(points: int = 31, last: float = 50000.0) -> dict:
    start_ms = 1_700_000_000_000
    prices = [[start_ms + i * 86_400_000, last - (points - 1 - i) * 100.0] for i in range(points)]
    return {"prices": prices}


@pytest.fixture
def quote_body():
    return coingecko_quote


@pytest.fixture
def history_body():
    return coingecko_history
