"""Abstract interface for upstream price sources."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import httpx

from .clock import Clock, LoopClock
from .errors import NoDataAvailable, PriceFeedError
from .models import Quote
from .retry import get_json_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PriceSource(ABC):
    """Contract for pull-based price providers.

    Implementations either return data or raise a PriceFeedError subclass.
    They never return partial garbage; shape problems become
    MalformedResponse.
    """

    name: str = "source"

    @abstractmethod
    async def fetch_quote(self, asset_id: str) -> Quote:
        """Current USD price and 24h stats for one asset."""

    @abstractmethod
    async def fetch_history(self, asset_id: str, days: int) -> list[float]:
        """Daily closing prices covering ``days``, oldest first."""


class RestPriceSource(PriceSource):
    """Shared plumbing for sources that speak JSON over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        quote_retries: int = 2,
        history_retries: int = 1,
        base_delay: float = 0.5,
        clock: Clock | None = None,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._quote_retries = quote_retries
        self._history_retries = history_retries
        self._base_delay = base_delay
        self._clock = clock or LoopClock()

    def _headers(self) -> dict[str, str] | None:
        return None

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any],
        retries: int,
        parse: Callable[[Any], T],
    ) -> T:
        return await get_json_with_retry(
            self._client,
            f"{self._base_url}{path}",
            params=params,
            headers=self._headers(),
            parse=parse,
            source=self.name,
            retries=retries,
            base_delay=self._base_delay,
            sleep=self._clock.sleep,
        )


async def first_success(
    sources: Sequence[PriceSource],
    call: Callable[[PriceSource], Awaitable[T]],
    what: str,
) -> tuple[T, PriceSource]:
    """Try ``call`` against each source in rank order.

    Returns the first result along with the source that produced it. Raises
    NoDataAvailable if every source fails or the list is empty.
    """
    failures: list[str] = []
    for source in sources:
        try:
            return await call(source), source
        except PriceFeedError as e:
            logger.warning("%s failed via %s: %s", what, source.name, e)
            failures.append(f"{source.name}: {e}")

    raise NoDataAvailable(f"no source could provide {what} ({'; '.join(failures) or 'no sources'})")
