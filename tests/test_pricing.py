"""
tests/test_pricing.py — USD Valuation Tests
============================================

Providers are exercised against ``httpx.MockTransport``; nothing touches
the network.
"""

from __future__ import annotations

import httpx
import pytest
from conftest import run_async

from tipdraw.engine.pricing import (
    CoinGeckoProvider,
    CoinMarketCapProvider,
    CoinPaprikaProvider,
    PriceResolver,
    extract_embedded_usd,
)


def _transport(routes: dict[str, object], calls: list[str] | None = None) -> httpx.MockTransport:
    """Answer by host: a dict becomes JSON, bytes are sent as a raw JSON body,
    an int becomes an empty error response.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.host)
        answer = routes.get(request.url.host)
        if answer is None:
            raise httpx.ConnectTimeout("timed out", request=request)
        if isinstance(answer, int):
            return httpx.Response(answer)
        if isinstance(answer, bytes):
            return httpx.Response(
                200, content=answer, headers={"content-type": "application/json"},
            )
        return httpx.Response(200, json=answer)
    return httpx.MockTransport(handler)


GECKO = "api.coingecko.com"
PAPRIKA = "api.coinpaprika.com"
CMC = "pro-api.coinmarketcap.com"


class TestEmbeddedPrice:
    @pytest.mark.parametrize("text, expected", [
        ("sent **0.5 LTC** (≈ $10.00).", 10.0),
        ("(≈ $1,234.56)", 1234.56),
        ("worth $ 3", 3.0),
    ])
    def test_extracts(self, text, expected):
        assert extract_embedded_usd(text) == pytest.approx(expected)

    def test_zero_or_missing_is_none(self):
        assert extract_embedded_usd("(≈ $0.00)") is None
        assert extract_embedded_usd("no dollars here") is None

    def test_overflowing_amount_is_none(self):
        assert extract_embedded_usd("$" + "9" * 400) is None


class TestResolver:
    def test_embedded_price_wins_without_network(self):
        calls: list[str] = []
        resolver = PriceResolver(transport=_transport({}, calls))
        value = run_async(resolver.resolve_usd_value("0.5 LTC (≈ $10.00)", "LTC", 0.5))
        assert value == pytest.approx(10.0)
        assert calls == []

    def test_coingecko_price_times_quantity(self):
        resolver = PriceResolver(transport=_transport({GECKO: {"litecoin": {"usd": 80.0}}}))
        value = run_async(resolver.resolve_usd_value("alice sent 0.5 LTC to bob", "LTC", 0.5))
        assert value == pytest.approx(40.0)

    def test_falls_through_to_paprika(self):
        calls: list[str] = []
        resolver = PriceResolver(transport=_transport({
            GECKO: 500,
            PAPRIKA: {"quotes": {"USD": {"price": 2.5}}},
        }, calls))
        value = run_async(resolver.resolve_usd_value("", "DOGE", 4))
        assert value == pytest.approx(10.0)
        assert calls == [GECKO, PAPRIKA]

    def test_timeout_counts_as_failure(self):
        resolver = PriceResolver(transport=_transport({
            PAPRIKA: {"quotes": {"USD": {"price": 100.0}}},
        }))
        assert run_async(resolver.fetch_provider_price("SOL")) == ("CoinPaprika", 100.0)

    def test_coinmarketcap_last(self):
        calls: list[str] = []
        resolver = PriceResolver(
            [CoinGeckoProvider(), CoinPaprikaProvider(), CoinMarketCapProvider(api_key="k")],
            transport=_transport({
                GECKO: {"bitcoin": {}},
                PAPRIKA: {"quotes": {"USD": {"price": 0}}},
                CMC: {"data": {"BTC": {"quote": {"USD": {"price": 60000.0}}}}},
            }, calls),
        )
        assert run_async(resolver.fetch_provider_price("btc")) == ("CoinMarketCap", 60000.0)
        assert calls == [GECKO, PAPRIKA, CMC]

    def test_coinmarketcap_list_payload(self):
        resolver = PriceResolver(
            [CoinMarketCapProvider(api_key="k")],
            transport=_transport({
                CMC: {"data": {"ETH": [{"quote": {"USD": {"price": 3000.0}}}]}},
            }),
        )
        assert run_async(resolver.fetch_provider_price("ETH")) == ("CoinMarketCap", 3000.0)

    def test_coinmarketcap_without_key_is_skipped(self, monkeypatch):
        monkeypatch.delenv("COINMARKETCAP_API_KEY", raising=False)
        calls: list[str] = []
        resolver = PriceResolver(
            [CoinMarketCapProvider()],
            transport=_transport({CMC: {"data": {}}}, calls),
        )
        assert run_async(resolver.fetch_provider_price("BTC")) is None
        assert calls == []

    def test_unmapped_symbol_is_not_guessed(self):
        calls: list[str] = []
        resolver = PriceResolver(
            [CoinGeckoProvider(), CoinPaprikaProvider()],
            transport=_transport({}, calls),
        )
        assert run_async(resolver.resolve_usd_value("", "PEPE", 1000)) is None
        assert calls == []

    def test_all_providers_failing_returns_none(self, monkeypatch):
        monkeypatch.delenv("COINMARKETCAP_API_KEY", raising=False)
        resolver = PriceResolver(transport=_transport({GECKO: 503, PAPRIKA: 404}))
        assert run_async(resolver.resolve_usd_value("", "BTC", 1)) is None

    @pytest.mark.parametrize("raw", [b"NaN", b"Infinity", b"-Infinity"])
    def test_non_finite_price_falls_through(self, raw):
        calls: list[str] = []
        resolver = PriceResolver(transport=_transport({
            GECKO: b'{"litecoin": {"usd": ' + raw + b"}}",
            PAPRIKA: {"quotes": {"USD": {"price": 80.0}}},
        }, calls))
        value = run_async(resolver.resolve_usd_value("no price here", "LTC", 2.0))
        assert value == pytest.approx(160.0)
        assert calls == [GECKO, PAPRIKA]

    def test_non_finite_only_source_is_unavailable(self, monkeypatch):
        monkeypatch.delenv("COINMARKETCAP_API_KEY", raising=False)
        resolver = PriceResolver(transport=_transport({
            GECKO: b'{"litecoin": {"usd": NaN}}',
            PAPRIKA: 404,
        }))
        assert run_async(resolver.resolve_usd_value("no price here", "LTC", 2.0)) is None
