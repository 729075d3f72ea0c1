"""HTTP GET with exponential backoff and error classification."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from .errors import MalformedResponse, NoDataAvailable, PriceFeedError, UpstreamRateLimited, UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def decode_response(response: httpx.Response, source: str) -> Any:
    """Classify the status code and decode the JSON body."""
    status = response.status_code
    if status == 429:
        raise UpstreamRateLimited("rate limited", source=source, status_code=status)
    if not response.is_success:
        raise UpstreamUnavailable(f"HTTP {status}", source=source, status_code=status)
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(f"invalid JSON body: {e}", source=source, status_code=status) from e


async def get_json_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    parse: Callable[[Any], T],
    source: str,
    retries: int,
    base_delay: float,
    sleep: Callable[[float], Awaitable[None]],
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> T:
    """GET ``url`` and parse it, retrying up to ``retries`` extra times.

    The delay before retry n is ``base_delay * 2**(n-1)``. Rate limiting,
    transport errors, non-2xx codes and malformed bodies all use up an
    attempt, so a 2xx response whose body is not valid JSON is fetched
    again rather than given up on. NoDataAvailable raised by ``parse`` is terminal
    and re-raised at once. After the last attempt the final error is
    re-raised.
    """
    attempts = max(retries, 0) + 1
    delay = base_delay

    for attempt in range(1, attempts + 1):
        try:
            try:
                response = await client.get(url, params=params, headers=headers)
            except httpx.HTTPError as e:
                raise UpstreamUnavailable(f"request failed: {e!r}", source=source) from e
            return parse(decode_response(response, source))
        except NoDataAvailable:
            raise
        except PriceFeedError as e:
            if attempt == attempts:
                logger.warning("%s: giving up after %d attempts", e, attempts)
                raise
            logger.warning(
                "%s (attempt %d/%d), retrying in %.0fms",
                e,
                attempt,
                attempts,
                delay * 1000,
            )

        await sleep(delay)
        delay *= 2

    raise UpstreamUnavailable("no attempts made", source=source)
