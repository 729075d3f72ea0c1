"""Pytest configuration and shared fixtures."""

import asyncio

import pytest


class FakeTimer:
    def __init__(self, when_ms: int, delay: float, callback) -> None:
        self.when_ms = when_ms
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Manually advanced clock. sleep() returns at once and moves time forward."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self._now_ms = start_ms
        self.timers: list[FakeTimer] = []
        self.sleeps: list[float] = []

    def now_ms(self) -> int:
        return self._now_ms

    def call_later(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(self._now_ms + int(delay * 1000), delay, callback)
        self.timers.append(timer)
        return timer

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self._now_ms += int(delay * 1000)
        await asyncio.sleep(0)

    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order."""
        target = self._now_ms + int(seconds * 1000)
        while True:
            due = sorted((t for t in self.pending() if t.when_ms <= target), key=lambda t: t.when_ms)
            if not due:
                break
            timer = due[0]
            self._now_ms = timer.when_ms
            timer.fired = True
            timer.callback()
        self._now_ms = target


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settle():
    """Let scheduled tasks run for a few event loop iterations."""

    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
