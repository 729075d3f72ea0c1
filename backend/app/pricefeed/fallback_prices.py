"""Static fallback constants and the exchange symbol table."""

# Approximate market values served when every upstream source is down
FALLBACK_PRICES: dict[str, dict[str, float]] = {
    "bitcoin": {"price": 89800.0, "change": 1.2, "volume": 25_000_000_000.0, "market_cap": 1_780_000_000_000.0},
    "ethereum": {"price": 3055.0, "change": 0.8, "volume": 12_000_000_000.0, "market_cap": 367_000_000_000.0},
    "solana": {"price": 127.0, "change": 2.1, "volume": 2_500_000_000.0, "market_cap": 55_000_000_000.0},
    "cardano": {"price": 0.375, "change": -0.5, "volume": 400_000_000.0, "market_cap": 13_500_000_000.0},
    "ripple": {"price": 1.94, "change": 0.3, "volume": 1_800_000_000.0, "market_cap": 112_000_000_000.0},
}

# Used for assets not listed above
DEFAULT_FALLBACK: dict[str, float] = FALLBACK_PRICES["bitcoin"]

# Synthetic history parameters
FALLBACK_VOLATILITY = 0.02  # 2% daily
FALLBACK_START_RATIO = 0.95  # series starts 5% below the current price
FALLBACK_UPWARD_BIAS = 0.45  # uniform draw is centered here, so the walk drifts up
FALLBACK_FLOOR_RATIO = 0.9  # a single step never drops more than 10%

# Exchange ticker symbol -> internal asset id
SYMBOL_MAP: dict[str, str] = {
    "BTCUSDT": "bitcoin",
    "ETHUSDT": "ethereum",
    "SOLUSDT": "solana",
    "ADAUSDT": "cardano",
    "XRPUSDT": "ripple",
}

ASSET_TO_SYMBOL: dict[str, str] = {asset: symbol for symbol, asset in SYMBOL_MAP.items()}

TRACKED_ASSETS: list[str] = list(FALLBACK_PRICES)


def fallback_for(asset_id: str) -> dict[str, float]:
    """Fallback constants for an asset, or the default when it is unknown."""
    return FALLBACK_PRICES.get(asset_id, DEFAULT_FALLBACK)


def has_fallback(asset_id: str) -> bool:
    return asset_id in FALLBACK_PRICES
