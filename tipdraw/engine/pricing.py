"""
tipdraw.engine.pricing — USD Valuation of Tips
===============================================

Resolution order for ``resolve_usd_value(text, symbol, quantity)``:

  1. A ``$amount`` embedded in the tip message itself.  tip.cc already
     prints the USD total (``(≈ $10.00)``), so when present it is
     authoritative and *quantity* is not used.
  2. CoinGecko → CoinPaprika → CoinMarketCap, first positive price wins,
     multiplied by *quantity*.

A provider failing for any reason (timeout, HTTP error, bad JSON, unknown
symbol, missing API key) only moves resolution on to the next one.  When
every source fails the result is ``None`` and the caller abandons the
donation.  No caching and no retries: one attempt per source per tip.
"""

from __future__ import annotations

import logging
import math
import os
import re
from collections.abc import Sequence
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

__all__ = [
    "COINGECKO_IDS",
    "COINPAPRIKA_IDS",
    "CoinGeckoProvider",
    "CoinMarketCapProvider",
    "CoinPaprikaProvider",
    "PriceProvider",
    "PriceResolver",
    "ProviderError",
    "default_providers",
    "extract_embedded_usd",
]

DEFAULT_TIMEOUT = 5.0

_EMBEDDED_USD = re.compile(r"\$\s?(\d[\d,]*(?:\.\d+)?|\.\d+)")


# ---------------------------------------------------------------------------
# Static symbol → provider id tables
# ---------------------------------------------------------------------------
COINGECKO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "LTC": "litecoin",
    "SOL": "solana",
    "USDT": "tether",
    "USDC": "usd-coin",
    "XRP": "ripple",
    "DOGE": "dogecoin",
    "SHIB": "shiba-inu",
    "BNB": "binancecoin",
    "ADA": "cardano",
    "AVAX": "avalanche-2",
    "TON": "the-open-network",
    "TRX": "tron",
    "TRON": "tron",
}

COINPAPRIKA_IDS: dict[str, str] = {
    "BTC": "btc-bitcoin",
    "ETH": "eth-ethereum",
    "LTC": "ltc-litecoin",
    "SOL": "sol-solana",
    "USDT": "usdt-tether",
    "USDC": "usdc-usd-coin",
    "XRP": "xrp-xrp",
    "DOGE": "doge-dogecoin",
    "SHIB": "shib-shiba-inu",
    "BNB": "bnb-binance-coin",
    "ADA": "ada-cardano",
    "AVAX": "avax-avalanche",
    "TON": "ton-the-open-network",
    "TRX": "trx-tron",
    "TRON": "trx-tron",
}


class ProviderError(Exception):
    """A price provider could not answer for this symbol."""


# ---------------------------------------------------------------------------
# Step 1: price stated in the message
# ---------------------------------------------------------------------------
def extract_embedded_usd(text: str) -> float | None:
    """Return the first positive ``$amount`` in *text*, else ``None``."""
    match = _EMBEDDED_USD.search(text)
    if match is None:
        return None
    try:
        value = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    return value if math.isfinite(value) and value > 0 else None


# ---------------------------------------------------------------------------
# Step 2: provider adapters
# ---------------------------------------------------------------------------
class PriceProvider(Protocol):
    name: str

    async def get_usd_price(self, symbol: str, client: httpx.AsyncClient) -> float:
        """Return the USD unit price of *symbol*; raise on any failure."""
        ...


def _positive(value: object) -> float:
    if value is None:
        raise ProviderError("price missing from response")
    price = float(value)  # type: ignore[arg-type]
    if not math.isfinite(price) or price <= 0:
        raise ProviderError(f"unusable price {price}")
    return price


class CoinGeckoProvider:
    name = "CoinGecko"
    url = "https://api.coingecko.com/api/v3/simple/price"

    def __init__(self, ids: dict[str, str] | None = None) -> None:
        self.ids = ids if ids is not None else COINGECKO_IDS

    async def get_usd_price(self, symbol: str, client: httpx.AsyncClient) -> float:
        coin_id = self.ids.get(symbol.upper())
        if coin_id is None:
            raise ProviderError(f"no CoinGecko id for {symbol}")
        resp = await client.get(self.url, params={"ids": coin_id, "vs_currencies": "usd"})
        resp.raise_for_status()
        return _positive(resp.json().get(coin_id, {}).get("usd"))


class CoinPaprikaProvider:
    name = "CoinPaprika"
    url = "https://api.coinpaprika.com/v1/tickers/{coin_id}"

    def __init__(self, ids: dict[str, str] | None = None) -> None:
        self.ids = ids if ids is not None else COINPAPRIKA_IDS

    async def get_usd_price(self, symbol: str, client: httpx.AsyncClient) -> float:
        coin_id = self.ids.get(symbol.upper())
        if coin_id is None:
            raise ProviderError(f"no CoinPaprika id for {symbol}")
        resp = await client.get(self.url.format(coin_id=coin_id))
        resp.raise_for_status()
        quotes = resp.json().get("quotes") or {}
        return _positive((quotes.get("USD") or {}).get("price"))


class CoinMarketCapProvider:
    """CoinMarketCap keys quotes by symbol; requires ``COINMARKETCAP_API_KEY``."""

    name = "CoinMarketCap"
    url = "https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key

    @property
    def api_key(self) -> str | None:
        return self._api_key or os.getenv("COINMARKETCAP_API_KEY")

    async def get_usd_price(self, symbol: str, client: httpx.AsyncClient) -> float:
        api_key = self.api_key
        if not api_key:
            raise ProviderError("COINMARKETCAP_API_KEY is not set")
        symbol = symbol.upper()
        resp = await client.get(
            self.url,
            params={"symbol": symbol},
            headers={"X-CMC_PRO_API_KEY": api_key},
        )
        resp.raise_for_status()
        entry = (resp.json().get("data") or {}).get(symbol) or {}
        if isinstance(entry, list):  # v2-style payloads list every match
            entry = entry[0] if entry else {}
        usd = ((entry.get("quote") or {}).get("USD") or {})
        return _positive(usd.get("price"))


def default_providers() -> list[PriceProvider]:
    """Providers in priority order."""
    return [CoinGeckoProvider(), CoinPaprikaProvider(), CoinMarketCapProvider()]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------
class PriceResolver:
    """Embedded price first, then each provider in order.

    Parameters
    ----------
    providers:
        Ordered provider adapters (defaults to :func:`default_providers`).
    timeout:
        Per-request timeout in seconds; a timeout counts as provider failure.
    transport:
        Optional ``httpx`` transport, used by tests to stub the network.
    """

    def __init__(
        self,
        providers: Sequence[PriceProvider] | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.providers = list(providers) if providers is not None else default_providers()
        self.timeout = timeout
        self._transport = transport

    async def fetch_provider_price(self, symbol: str) -> tuple[str, float] | None:
        """Return ``(provider_name, unit_price)`` from the first provider that answers."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for provider in self.providers:
                try:
                    price = await provider.get_usd_price(symbol, client)
                except (httpx.HTTPError, ProviderError, ValueError, TypeError, AttributeError) as exc:
                    logger.debug("%s failed for %s: %s", provider.name, symbol, exc)
                    continue
                return provider.name, price
        return None

    async def resolve_usd_value(
        self, text: str, symbol: str, quantity: float
    ) -> float | None:
        """USD value of a tip, or ``None`` when no source could price it."""
        embedded = extract_embedded_usd(text)
        if embedded is not None:
            logger.info("Using USD value stated in message: $%.2f", embedded)
            return embedded

        found = await self.fetch_provider_price(symbol)
        if found is None:
            logger.warning("Could not fetch price for %s from any provider", symbol)
            return None

        provider_name, price = found
        total = price * quantity
        if not math.isfinite(total):
            logger.warning("%s price for %s gave a non-finite total", provider_name, symbol)
            return None
        logger.info(
            "%s price for %s: $%s (total $%.4f)", provider_name, symbol, price, total,
        )
        return total
