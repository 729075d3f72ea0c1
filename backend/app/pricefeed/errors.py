"""Error taxonomy for upstream price fetches.

None of these escape the aggregator or the stream manager. They exist so the
retry loop and the ranked-source combinator can tell retryable failures from
terminal ones.
"""

from __future__ import annotations


class PriceFeedError(Exception):
    """Base class for all price feed failures."""

    retryable: bool = True

    def __init__(self, message: str, source: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.source}] {base}" if self.source else base


class UpstreamRateLimited(PriceFeedError):
    """Upstream answered 429."""


class UpstreamUnavailable(PriceFeedError):
    """Network failure, timeout or non-2xx response."""


class MalformedResponse(PriceFeedError):
    """Response body was not JSON or did not have the expected shape."""


class NoDataAvailable(PriceFeedError):
    """Upstream has nothing for this request. Retrying will not help."""

    retryable = False
