"""Streaming ticker client with exponential-backoff reconnects."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol

import websockets
from websockets.exceptions import ConnectionClosed

from .binance import DEFAULT_WS_URL
from .clock import Clock, LoopClock, TimerHandle
from .fallback_prices import SYMBOL_MAP
from .models import ConnectionState, StreamTick
from .reconnect import (
    ABNORMAL_CLOSURE,
    CancelReconnect,
    CloseConnection,
    Closed,
    Effect,
    Event,
    Failed,
    OpenConnection,
    Opened,
    ReconnectPolicy,
    ReportExhausted,
    ResetAttempts,
    ScheduleReconnect,
    Start,
    Stop,
    StreamState,
    TimerFired,
    transition,
)

logger = logging.getLogger(__name__)

TickCallback = Callable[[StreamTick], None]
StateCallback = Callable[[ConnectionState], None]


class TickerConnection(Protocol):
    """The subset of a websockets client connection this module relies on."""

    close_code: int | None

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


Connector = Callable[[str], Awaitable[TickerConnection]]


async def websocket_connector(url: str) -> TickerConnection:
    """Open a websocket. The exchange answers pings itself, so no app-level keep-alive."""
    return await websockets.connect(url, ping_interval=20, ping_timeout=20, close_timeout=5)


def parse_ticker_record(record: Any, symbol_map: dict[str, str], now_ms: int) -> StreamTick | None:
    """Normalize one ``{s, c, P, E}`` record. None for unmapped or incomplete records."""
    if not isinstance(record, dict):
        return None
    symbol = record.get("s")
    asset_id = symbol_map.get(symbol) if isinstance(symbol, str) else None
    if asset_id is None:
        return None

    price, change = record.get("c"), record.get("P")
    if price in (None, "") or change in (None, ""):
        return None
    try:
        event_time = record.get("E")
        return StreamTick(
            asset_id=asset_id,
            price_usd=float(price),
            change_24h_pct=float(change),
            ts_ms=int(event_time) if event_time else now_ms,
            symbol=symbol,
        )
    except (TypeError, ValueError) as e:
        logger.warning("Skipping ticker record for %s: %s", symbol, e)
        return None


class TickerStream:
    """Keeps one streaming connection alive and fans ticks out to callbacks.

    The reconnect policy lives in ``reconnect.transition``. This class runs
    the effects it asks for: opening connections, closing them, and arming or
    cancelling the single reconnect timer.

    Lifecycle:
        stream = TickerStream()
        unsubscribe = stream.on_tick(handle_tick)
        await stream.start()
        # ... connection drops, stream backs off and reconnects on its own ...
        await stream.force_reconnect()   # manual "reconnect" action
        await stream.stop()
    """

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        symbol_map: dict[str, str] | None = None,
        clock: Clock | None = None,
        connector: Connector | None = None,
        policy: ReconnectPolicy | None = None,
    ) -> None:
        self._url = url
        self._symbol_map = dict(symbol_map or SYMBOL_MAP)
        self._clock = clock or LoopClock()
        self._connector = connector or websocket_connector
        self._policy = policy or ReconnectPolicy()

        self._state = StreamState()
        self._tick_callbacks: list[TickCallback] = []
        self._state_callbacks: list[StateCallback] = []

        self._task: asyncio.Task | None = None
        self._conn: TickerConnection | None = None
        self._timer: TimerHandle | None = None
        self._close_tasks: set[asyncio.Task] = set()
        self._generation = 0  # Bumped per connection; late events from old ones are ignored

    # --- Public API ---

    def on_tick(self, callback: TickCallback) -> Callable[[], None]:
        """Register a tick callback. Returns a function that unregisters it."""
        self._tick_callbacks.append(callback)
        return lambda: self._remove(self._tick_callbacks, callback)

    def on_state_change(self, callback: StateCallback) -> Callable[[], None]:
        self._state_callbacks.append(callback)
        return lambda: self._remove(self._state_callbacks, callback)

    def get_connection_state(self) -> ConnectionState:
        return self._state.public()

    @property
    def is_connected(self) -> bool:
        return self._state.public().is_connected

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    async def start(self) -> None:
        """Open the connection. No-op while already connecting or connected."""
        self._dispatch(Start())

    async def stop(self) -> None:
        """Cancel any pending reconnect, close with 1000 and go idle. Idempotent."""
        self._dispatch(Stop())
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._close_tasks:
            await asyncio.gather(*self._close_tasks, return_exceptions=True)

    async def force_reconnect(self) -> None:
        """stop(), reset the retry budget, then start() after a short delay."""
        await self.stop()
        self._dispatch(ResetAttempts())
        delay = self._policy.force_reconnect_delay_ms / 1000
        logger.info("Manual reconnect requested; connecting in %.1fs", delay)
        self._timer = self._clock.call_later(delay, self._on_force_timer)

    def publish(self, tick: StreamTick) -> None:
        """Deliver a tick to every callback. A failing callback does not affect the others."""
        for callback in list(self._tick_callbacks):
            try:
                callback(tick)
            except Exception:
                logger.exception("Tick callback failed for %s", tick.asset_id)

    # --- State machine plumbing ---

    def _dispatch(self, event: Event) -> None:
        before = self._state.public()
        result = transition(self._state, event, self._policy)
        self._state = result.state
        after = self._state.public()
        if after != before:
            logger.debug("Ticker stream %s -> %s (%s)", before.status.value, after.status.value, type(event).__name__)
            for callback in list(self._state_callbacks):
                try:
                    callback(after)
                except Exception:
                    logger.exception("Connection state callback failed")
        for effect in result.effects:
            self._apply(effect)

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, OpenConnection):
            self._generation += 1
            logger.info("Connecting to ticker stream %s", self._url)
            self._task = asyncio.create_task(self._run_connection(self._generation), name="ticker-stream")
        elif isinstance(effect, CloseConnection):
            conn, self._conn = self._conn, None
            if conn is not None:
                task = asyncio.create_task(self._close(conn, effect.code, effect.reason))
                self._close_tasks.add(task)
                task.add_done_callback(self._close_tasks.discard)
        elif isinstance(effect, ScheduleReconnect):
            logger.info(
                "Reconnecting in %dms... (attempt %d/%d)",
                effect.delay_ms,
                effect.attempt,
                self._policy.max_attempts,
            )
            self._cancel_timer()
            self._timer = self._clock.call_later(effect.delay_ms / 1000, self._on_reconnect_timer)
        elif isinstance(effect, CancelReconnect):
            self._cancel_timer()
        elif isinstance(effect, ReportExhausted):
            logger.error(
                "Max reconnection attempts reached (%d); consumers should fall back to polling",
                effect.attempts,
            )

    def _on_reconnect_timer(self) -> None:
        self._timer = None
        self._dispatch(TimerFired())

    def _on_force_timer(self) -> None:
        self._timer = None
        self._dispatch(Start())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # --- Connection task ---

    async def _run_connection(self, generation: int) -> None:
        try:
            conn = await self._connector(self._url)
        except Exception as e:
            logger.error("Failed to open ticker stream: %s", e)
            if generation == self._generation:
                self._dispatch(Failed(str(e)))
                self._dispatch(Closed(code=ABNORMAL_CLOSURE, reason=str(e)))
            return

        if generation != self._generation:
            await self._close(conn, 1000, "superseded")
            return

        self._conn = conn
        self._dispatch(Opened())
        logger.info("Ticker stream connected")

        reason = ""
        try:
            async for raw in conn:
                self._handle_message(raw)
        except ConnectionClosed as e:
            reason = str(e)
        except Exception as e:
            logger.error("Ticker stream error: %s", e)
            reason = str(e)
            if generation == self._generation:
                self._dispatch(Failed(reason))

        if generation != self._generation:
            return
        if self._conn is conn:
            self._conn = None
        code = getattr(conn, "close_code", None) or ABNORMAL_CLOSURE
        logger.info("Ticker stream disconnected (code: %s, reason: %s)", code, reason or "-")
        self._dispatch(Closed(code=code, reason=reason))

    async def _close(self, conn: TickerConnection, code: int, reason: str) -> None:
        try:
            await conn.close(code=code, reason=reason)
        except Exception as e:
            logger.warning("Error closing ticker stream: %s", e)

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Error parsing ticker message: %s", e)
            return

        if not isinstance(payload, list):
            logger.debug("Ignoring non-array ticker payload")
            return

        now_ms = self._clock.now_ms()
        for record in payload:
            tick = parse_ticker_record(record, self._symbol_map, now_ms)
            if tick is not None:
                self.publish(tick)

    @staticmethod
    def _remove(callbacks: list, callback: Callable) -> None:
        try:
            callbacks.remove(callback)
        except ValueError:
            pass
