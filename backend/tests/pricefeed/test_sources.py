"""Tests for the CoinGecko and Binance REST sources."""

import pytest

from app.pricefeed.binance import BinanceRestSource, parse_klines, parse_ticker_24h
from app.pricefeed.coingecko import CoinGeckoSource, parse_history, parse_quote
from app.pricefeed.errors import MalformedResponse, NoDataAvailable, UpstreamRateLimited, UpstreamUnavailable
from app.pricefeed.models import Quote

CG = "https://cg.test/api/v3"
BN = "https://bn.test"


class TestCoinGeckoParsing:
    def test_parse_quote(self, quote_body):
        quote = parse_quote(quote_body("bitcoin", 50000.0), "bitcoin")
        assert quote == Quote(price=50000.0, change_24h=2.5, volume_24h=1e9, market_cap=1e12)

    def test_missing_optional_fields_default_to_zero(self):
        quote = parse_quote({"solana": {"usd": 127}}, "solana")
        assert quote == Quote(price=127.0)

    def test_unknown_asset_is_no_data(self):
        with pytest.raises(NoDataAvailable):
            parse_quote({}, "notacoin")

    def test_negative_price_is_malformed(self):
        with pytest.raises(MalformedResponse):
            parse_quote({"bitcoin": {"usd": -1}}, "bitcoin")

    def test_missing_price_is_malformed(self):
        with pytest.raises(MalformedResponse):
            parse_quote({"bitcoin": {"usd_24h_change": 1.0}}, "bitcoin")

    def test_non_numeric_field_is_malformed(self):
        with pytest.raises(MalformedResponse):
            parse_quote({"bitcoin": {"usd": "lots"}}, "bitcoin")

    def test_parse_history(self, history_body):
        series = parse_history(history_body(points=31, last=50000.0))
        assert len(series) == 31
        assert series[-1] == 50000.0
        assert series == sorted(series)

    def test_history_without_prices_is_malformed(self):
        with pytest.raises(MalformedResponse):
            parse_history({"error": "nope"})

    def test_empty_history_is_no_data(self):
        with pytest.raises(NoDataAvailable):
            parse_history({"prices": []})


class TestBinanceParsing:
    def test_parse_ticker(self):
        quote = parse_ticker_24h({"lastPrice": "3055.10", "priceChangePercent": "-0.80", "quoteVolume": "12000"})
        assert quote == Quote(price=3055.10, change_24h=-0.80, volume_24h=12000.0, market_cap=0.0)

    def test_ticker_missing_price(self):
        with pytest.raises(MalformedResponse):
            parse_ticker_24h({"priceChangePercent": "1.0"})

    def test_parse_klines_uses_close_column(self):
        rows = [
            [0, "1.0", "2.0", "0.5", "1.5", "100"],
            [1, "1.5", "2.5", "1.0", "2.0", "100"],
        ]
        assert parse_klines(rows) == [1.5, 2.0]

    def test_bad_kline_row(self):
        with pytest.raises(MalformedResponse):
            parse_klines([[0, 1, 2]])


@pytest.mark.asyncio
class TestCoinGeckoSource:
    async def test_fetch_quote_sends_expected_params(self, upstream, http_client, clock, quote_body):
        upstream.on("/api/v3/simple/price", quote_body("ethereum", 3000.0))
        source = CoinGeckoSource(http_client, base_url=CG, clock=clock)

        quote = await source.fetch_quote("ethereum")

        assert quote.price == 3000.0
        params = upstream.requests[0].url.params
        assert params["ids"] == "ethereum"
        assert params["vs_currencies"] == "usd"
        assert params["include_market_cap"] == "true"

    async def test_api_key_header(self, upstream, http_client, clock, quote_body):
        upstream.on("/api/v3/simple/price", quote_body())
        source = CoinGeckoSource(http_client, base_url=CG, api_key="demo-key", clock=clock)

        await source.fetch_quote("bitcoin")

        assert upstream.requests[0].headers["x-cg-demo-api-key"] == "demo-key"

    async def test_fetch_history(self, upstream, http_client, clock, history_body):
        upstream.on("/api/v3/coins/bitcoin/market_chart", history_body(points=8))
        source = CoinGeckoSource(http_client, base_url=CG, clock=clock)

        series = await source.fetch_history("bitcoin", 7)

        assert len(series) == 8
        params = upstream.requests[0].url.params
        assert params["days"] == "7"
        assert params["interval"] == "daily"

    async def test_quote_retries_twice(self, upstream, http_client, clock):
        upstream.on("/api/v3/simple/price", 429)
        source = CoinGeckoSource(http_client, base_url=CG, clock=clock)

        with pytest.raises(UpstreamRateLimited):
            await source.fetch_quote("bitcoin")
        assert upstream.count("/api/v3/simple/price") == 3

    async def test_history_retries_once(self, upstream, http_client, clock):
        upstream.on("/api/v3/coins/bitcoin/market_chart", 500)
        source = CoinGeckoSource(http_client, base_url=CG, clock=clock)

        with pytest.raises(UpstreamUnavailable):
            await source.fetch_history("bitcoin", 30)
        assert upstream.count("/api/v3/coins/bitcoin/market_chart") == 2


@pytest.mark.asyncio
class TestBinanceRestSource:
    async def test_fetch_quote(self, upstream, http_client, clock):
        upstream.on("/api/v3/ticker/24hr", {"lastPrice": "50000", "priceChangePercent": "1.5", "quoteVolume": "9"})
        source = BinanceRestSource(http_client, base_url=BN, clock=clock)

        quote = await source.fetch_quote("bitcoin")

        assert quote.price == 50000.0
        assert upstream.requests[0].url.params["symbol"] == "BTCUSDT"

    async def test_fetch_history_limit(self, upstream, http_client, clock):
        rows = [[i, "0", "0", "0", str(100 + i), "0"] for i in range(31)]
        upstream.on("/api/v3/klines", rows)
        source = BinanceRestSource(http_client, base_url=BN, clock=clock)

        series = await source.fetch_history("ripple", 30)

        assert len(series) == 31
        params = upstream.requests[0].url.params
        assert params["symbol"] == "XRPUSDT"
        assert params["interval"] == "1d"
        assert params["limit"] == "31"

    async def test_unknown_asset_fails_without_request(self, upstream, http_client, clock):
        source = BinanceRestSource(http_client, base_url=BN, clock=clock)

        with pytest.raises(NoDataAvailable):
            await source.fetch_quote("dogecoin")
        assert upstream.requests == []
