"""Synthetic snapshots for when no upstream data can be had."""

from __future__ import annotations

import numpy as np

from .fallback_prices import (
    FALLBACK_FLOOR_RATIO,
    FALLBACK_START_RATIO,
    FALLBACK_UPWARD_BIAS,
    FALLBACK_VOLATILITY,
    fallback_for,
)
from .models import PriceSnapshot, Provenance


def generate_history(
    current_price: float,
    days: int,
    rng: np.random.Generator | None = None,
    volatility: float = FALLBACK_VOLATILITY,
) -> list[float]:
    """Random-walk daily series of ``days + 1`` points ending at current_price.

    Math:
        P(0)   = current_price * 0.95
        P(t+1) = max(P(t) + (U - 0.45) * volatility * P(t), 0.9 * P(t))

    Where U ~ Uniform[0, 1). The 0.45 center gives a mild upward drift so the
    walk lands near the anchor before the last point is overwritten with it.
    """
    rng = rng or np.random.default_rng()
    n = max(days, 0) + 1
    draws = rng.random(n)

    prices: list[float] = []
    price = current_price * FALLBACK_START_RATIO
    for u in draws:
        prices.append(float(price))
        change = (u - FALLBACK_UPWARD_BIAS) * volatility * price
        price = max(price + change, price * FALLBACK_FLOOR_RATIO)

    prices[-1] = float(current_price)
    return prices


def build_fallback_snapshot(
    asset_id: str,
    window_days: int,
    now_ms: int,
    provenance: Provenance = Provenance.FALLBACK,
    rng: np.random.Generator | None = None,
) -> PriceSnapshot:
    """Snapshot built entirely from static constants for the asset."""
    fallback = fallback_for(asset_id)
    return PriceSnapshot(
        asset_id=asset_id,
        price_usd=fallback["price"],
        change_24h_pct=fallback["change"],
        volume_24h_usd=fallback["volume"],
        market_cap_usd=fallback["market_cap"],
        historical_series=tuple(generate_history(fallback["price"], window_days, rng)),
        fetched_at_ms=now_ms,
        provenance=provenance,
    )
