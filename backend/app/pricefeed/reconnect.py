"""Pure state machine for the streaming connection's reconnect policy.

``transition(state, event, policy)`` returns the next state plus the side
effects the caller must perform. It never touches sockets or timers itself,
so the whole policy can be exercised without I/O.

    disconnected --Start--> connecting --Opened--> connected
         ^                      |                      |
         |                   Closed                 Closed
         |                      v                      v
         +------ TimerFired <-- (attempt < max: ScheduleReconnect)
                                (attempt >= max: errored, terminal)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from .models import ConnectionState, ConnectionStatus

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    max_attempts: int = 5
    base_delay_ms: int = 3000
    force_reconnect_delay_ms: int = 1000

    def delay_ms(self, attempt: int) -> int:
        """Delay before reconnect attempt n (1-based): base * 2^(n-1)."""
        return self.base_delay_ms * 2 ** (attempt - 1)


@dataclass(frozen=True, slots=True)
class StreamState:
    """Machine state. ``active`` is False once the consumer has called stop()."""

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    reconnect_attempt: int = 0
    active: bool = False

    def public(self) -> ConnectionState:
        return ConnectionState(status=self.status, reconnect_attempt=self.reconnect_attempt)


# --- Events ---


@dataclass(frozen=True, slots=True)
class Start:
    pass


@dataclass(frozen=True, slots=True)
class Opened:
    pass


@dataclass(frozen=True, slots=True)
class Failed:
    error: str = ""


@dataclass(frozen=True, slots=True)
class Closed:
    code: int = ABNORMAL_CLOSURE
    reason: str = ""


@dataclass(frozen=True, slots=True)
class TimerFired:
    pass


@dataclass(frozen=True, slots=True)
class Stop:
    pass


@dataclass(frozen=True, slots=True)
class ResetAttempts:
    pass


Event = Union[Start, Opened, Failed, Closed, TimerFired, Stop, ResetAttempts]


# --- Effects ---


@dataclass(frozen=True, slots=True)
class OpenConnection:
    pass


@dataclass(frozen=True, slots=True)
class CloseConnection:
    code: int = NORMAL_CLOSURE
    reason: str = "Manual disconnect"


@dataclass(frozen=True, slots=True)
class ScheduleReconnect:
    delay_ms: int
    attempt: int


@dataclass(frozen=True, slots=True)
class CancelReconnect:
    pass


@dataclass(frozen=True, slots=True)
class ReportExhausted:
    attempts: int


Effect = Union[OpenConnection, CloseConnection, ScheduleReconnect, CancelReconnect, ReportExhausted]


@dataclass(frozen=True, slots=True)
class Transition:
    state: StreamState
    effects: tuple[Effect, ...] = ()


def transition(state: StreamState, event: Event, policy: ReconnectPolicy) -> Transition:
    """Apply one event to the machine."""
    if isinstance(event, Start):
        return _on_start(state)
    if isinstance(event, Opened):
        return _on_opened(state)
    if isinstance(event, Failed):
        return _on_failed(state)
    if isinstance(event, Closed):
        return _on_closed(state, policy)
    if isinstance(event, TimerFired):
        return _on_timer(state)
    if isinstance(event, Stop):
        return _on_stop(state)
    if isinstance(event, ResetAttempts):
        return Transition(replace(state, reconnect_attempt=0))
    raise TypeError(f"unknown stream event: {event!r}")


def _on_start(state: StreamState) -> Transition:
    if state.active and state.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
        return Transition(state)
    if state.active and state.status is ConnectionStatus.DISCONNECTED:
        # A reconnect timer is pending; let it fire instead of racing it
        return Transition(state)
    attempt = 0 if state.status is ConnectionStatus.ERRORED else state.reconnect_attempt
    return Transition(
        StreamState(status=ConnectionStatus.CONNECTING, reconnect_attempt=attempt, active=True),
        (OpenConnection(),),
    )


def _on_opened(state: StreamState) -> Transition:
    if not state.active:
        # Connection finished opening after stop(); shut it straight away
        return Transition(state, (CloseConnection(),))
    return Transition(replace(state, status=ConnectionStatus.CONNECTED, reconnect_attempt=0))


def _on_failed(state: StreamState) -> Transition:
    if not state.active or state.status is ConnectionStatus.ERRORED:
        return Transition(state)
    return Transition(replace(state, status=ConnectionStatus.DISCONNECTED))


def _on_closed(state: StreamState, policy: ReconnectPolicy) -> Transition:
    if state.status is ConnectionStatus.ERRORED:
        return Transition(state)
    if not state.active:
        return Transition(replace(state, status=ConnectionStatus.DISCONNECTED))

    if state.reconnect_attempt < policy.max_attempts:
        attempt = state.reconnect_attempt + 1
        return Transition(
            replace(state, status=ConnectionStatus.DISCONNECTED, reconnect_attempt=attempt),
            (ScheduleReconnect(delay_ms=policy.delay_ms(attempt), attempt=attempt),),
        )

    return Transition(
        replace(state, status=ConnectionStatus.ERRORED, active=False),
        (ReportExhausted(attempts=state.reconnect_attempt),),
    )


def _on_timer(state: StreamState) -> Transition:
    if not state.active or state.status is not ConnectionStatus.DISCONNECTED:
        return Transition(state)
    return Transition(replace(state, status=ConnectionStatus.CONNECTING), (OpenConnection(),))


def _on_stop(state: StreamState) -> Transition:
    return Transition(
        StreamState(status=ConnectionStatus.DISCONNECTED, reconnect_attempt=state.reconnect_attempt, active=False),
        (CancelReconnect(), CloseConnection()),
    )
