# -*- coding: utf-8 -*-
"""
Latest-price sources for the trade ledger.

Adapters translate library and HTTP failures into the ``PriceFeedError``
family so the ledger can record failures per symbol without knowing the
backend. Retry and backoff are handled by ``RetryingPriceFeed``.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import requests
from binance.client import Client
from binance.exceptions import BinanceAPIException


logger = logging.getLogger(__name__)


ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"
MAX_RETRIES = 3
REQUEST_TIMEOUT = 10  # seconds

# Binance error codes
BINANCE_TOO_MANY_REQUESTS = -1003
BINANCE_INVALID_SYMBOL = -1121


# ============================================================================
# Errors
# ============================================================================

class PriceFeedError(Exception):
    """Base class for price fetch failures."""

    def __init__(self, symbol: str, message: str):
        super().__init__(f"{symbol}: {message}")
        self.symbol = symbol


class TransientPriceFeedError(PriceFeedError):
    """Network or server failure; worth retrying."""


class RateLimitError(PriceFeedError):
    """Provider rate limit reached; retry after a longer delay."""


class PriceDataError(PriceFeedError):
    """Response does not contain a usable price; retrying will not help."""


# ============================================================================
# Interface
# ============================================================================

class PriceFeed(ABC):
    """Source of the latest traded price for a symbol."""

    @abstractmethod
    def fetch_latest_price(self, symbol: str) -> float:
        """
        Fetch the latest price.

        Parameters
        ----------
        symbol : str
            Ticker as stored on the trade (e.g. ``AAPL``, ``TCS.NS``).

        Returns
        -------
        float
            Latest price.

        Raises
        ------
        PriceFeedError
            On any failure.
        """


# ============================================================================
# Alpha Vantage
# ============================================================================

def to_alpha_vantage_symbol(symbol: str) -> str:
    """Map a ledger ticker to Alpha Vantage notation."""
    if symbol.endswith('.NS'):
        return symbol[:-len('.NS')]
    if symbol.endswith('.L'):
        return 'LON:' + symbol[:-len('.L')]
    return symbol


class AlphaVantagePriceFeed(PriceFeed):
    """Latest prices from the Alpha Vantage quote endpoints."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 base_url: str = ALPHA_VANTAGE_URL, timeout: float = REQUEST_TIMEOUT):
        """
        Initialize Alpha Vantage feed.

        Parameters
        ----------
        api_key : str
            Alpha Vantage API key.
        session : requests.Session, optional
            HTTP session to reuse. A new one is created if omitted.
        base_url : str, optional
            Query endpoint.
        timeout : float, optional
            Request timeout in seconds.
        """
        self.api_key = api_key
        self.session = session or requests.Session()
        self.base_url = base_url
        self.timeout = timeout

    def _query(self, symbol: str, function: str, av_symbol: str) -> Dict[str, Any]:
        params = {'function': function, 'symbol': av_symbol, 'apikey': self.api_key}
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransientPriceFeedError(symbol, f"request failed: {e}") from e

        if response.status_code != 200:
            raise TransientPriceFeedError(symbol, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise PriceDataError(symbol, "response is not valid JSON") from e

        if not isinstance(data, dict):
            raise PriceDataError(symbol, "unexpected response structure")
        if data.get('Error Message'):
            raise PriceDataError(symbol, f"Alpha Vantage error: {data['Error Message']}")
        note = data.get('Note') or ''
        if 'API call frequency' in note:
            raise RateLimitError(symbol, "Alpha Vantage call frequency limit reached")
        return data

    def _global_quote(self, symbol: str, av_symbol: str) -> float:
        data = self._query(symbol, 'GLOBAL_QUOTE', av_symbol)
        quote = data.get('Global Quote') or {}
        raw_price = quote.get('05. price')
        if not raw_price:
            raise PriceDataError(symbol, "invalid response structure from Alpha Vantage")
        try:
            return float(raw_price)
        except (TypeError, ValueError) as e:
            raise PriceDataError(symbol, f"invalid price {raw_price!r}") from e

    def _daily_close(self, symbol: str, av_symbol: str) -> float:
        data = self._query(symbol, 'TIME_SERIES_DAILY', av_symbol)
        series = data.get('Time Series (Daily)') or {}
        if not series:
            raise PriceDataError(symbol, "could not extract price from daily series")
        latest = series[max(series)]
        try:
            return float(latest['4. close'])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceDataError(symbol, "could not extract price from daily series") from e

    def fetch_latest_price(self, symbol: str) -> float:
        av_symbol = to_alpha_vantage_symbol(symbol)
        logger.debug(f"Fetching price for {symbol} ({av_symbol}) from Alpha Vantage")
        try:
            price = self._global_quote(symbol, av_symbol)
        except PriceDataError:
            # NSE listings are often missing from the quote endpoint
            if not symbol.endswith('.NS'):
                raise
            logger.info(f"Global quote unavailable for {symbol}, trying daily series")
            price = self._daily_close(symbol, av_symbol)
        logger.debug(f"Fetched price for {symbol}: {price}")
        return price


# ============================================================================
# Binance
# ============================================================================

class BinancePriceFeed(PriceFeed):
    """Latest prices from the Binance ticker endpoint."""

    def __init__(self, client: Client):
        """
        Initialize Binance feed.

        Parameters
        ----------
        client : Client
            python-binance client instance.
        """
        self.client = client

    def fetch_latest_price(self, symbol: str) -> float:
        try:
            ticker = self.client.get_symbol_ticker(symbol=symbol)
        except BinanceAPIException as e:
            if e.code == BINANCE_TOO_MANY_REQUESTS or e.status_code == 429:
                raise RateLimitError(symbol, f"Binance rate limit: {e.message}") from e
            if e.code == BINANCE_INVALID_SYMBOL:
                raise PriceDataError(symbol, f"Binance rejected symbol: {e.message}") from e
            raise TransientPriceFeedError(symbol, f"Binance API error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransientPriceFeedError(symbol, f"request failed: {e}") from e

        try:
            return float(ticker['price'])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceDataError(symbol, f"unexpected ticker payload: {ticker!r}") from e


# ============================================================================
# Retry
# ============================================================================

class RetryingPriceFeed(PriceFeed):
    """
    Wraps a feed with exponential backoff.

    Transient failures wait ``base_delay * 2**attempt`` seconds, rate-limit
    failures ``base_delay * 2**(attempt + 3)``. ``PriceDataError`` is raised
    immediately.
    """

    def __init__(self, inner: PriceFeed, max_retries: int = MAX_RETRIES,
                 base_delay: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.inner = inner
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep

    def fetch_latest_price(self, symbol: str) -> float:
        attempt = 0
        while True:
            try:
                return self.inner.fetch_latest_price(symbol)
            except PriceDataError:
                raise
            except RateLimitError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.base_delay * 2 ** (attempt + 3)
                logger.warning(f"Rate limited fetching {symbol}, retrying in {delay:.1f}s ({e})")
            except TransientPriceFeedError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.base_delay * 2 ** attempt
                logger.warning(
                    f"Retrying fetch for {symbol} (attempt {attempt + 1}/{self.max_retries}) "
                    f"in {delay:.1f}s: {e}"
                )
            self.sleep(delay)
            attempt += 1
