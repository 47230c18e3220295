"""Tests for price feed adapters and retry handling, with mocked HTTP and Binance clients."""

import json
from unittest.mock import MagicMock, Mock

import pytest
import requests
from binance.exceptions import BinanceAPIException

from dti_trader.live.price_feed import (
    AlphaVantagePriceFeed,
    BinancePriceFeed,
    PriceDataError,
    PriceFeed,
    RateLimitError,
    RetryingPriceFeed,
    TransientPriceFeedError,
    to_alpha_vantage_symbol
)


def _response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _binance_error(code, status_code=400, msg="error"):
    return BinanceAPIException(Mock(), status_code, json.dumps({'code': code, 'msg': msg}))


class ScriptedFeed(PriceFeed):
    """Raises the queued errors in order, then returns ``price``."""

    def __init__(self, errors, price=50.0):
        self.errors = list(errors)
        self.price = price
        self.calls = 0

    def fetch_latest_price(self, symbol):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.price


class TestAlphaVantageSymbols:
    @pytest.mark.parametrize("symbol, expected", [
        ('AAPL', 'AAPL'),
        ('TCS.NS', 'TCS'),
        ('VOD.L', 'LON:VOD'),
    ])
    def test_mapping(self, symbol, expected):
        assert to_alpha_vantage_symbol(symbol) == expected


class TestAlphaVantagePriceFeed:
    def test_global_quote(self):
        session = MagicMock()
        session.get.return_value = _response({'Global Quote': {'05. price': '187.4400'}})
        feed = AlphaVantagePriceFeed('key', session=session)

        assert feed.fetch_latest_price('AAPL') == pytest.approx(187.44)
        params = session.get.call_args.kwargs['params']
        assert params == {'function': 'GLOBAL_QUOTE', 'symbol': 'AAPL', 'apikey': 'key'}

    def test_nse_falls_back_to_daily_series(self):
        session = MagicMock()
        session.get.side_effect = [
            _response({'Global Quote': {}}),
            _response({'Time Series (Daily)': {
                '2024-01-09': {'4. close': '3700.00'},
                '2024-01-10': {'4. close': '3725.50'}
            }})
        ]
        feed = AlphaVantagePriceFeed('key', session=session)

        assert feed.fetch_latest_price('TCS.NS') == pytest.approx(3725.5)
        assert session.get.call_args.kwargs['params']['function'] == 'TIME_SERIES_DAILY'

    def test_missing_quote_is_data_error(self):
        session = MagicMock()
        session.get.return_value = _response({'Global Quote': {}})
        with pytest.raises(PriceDataError):
            AlphaVantagePriceFeed('key', session=session).fetch_latest_price('AAPL')

    def test_rate_limit_note(self):
        session = MagicMock()
        session.get.return_value = _response({'Note': 'Thank you for using Alpha Vantage! Our standard '
                                                      'API call frequency is 5 calls per minute.'})
        with pytest.raises(RateLimitError):
            AlphaVantagePriceFeed('key', session=session).fetch_latest_price('AAPL')

    def test_error_message(self):
        session = MagicMock()
        session.get.return_value = _response({'Error Message': 'Invalid API call.'})
        with pytest.raises(PriceDataError):
            AlphaVantagePriceFeed('key', session=session).fetch_latest_price('AAPL')

    def test_http_error_is_transient(self):
        session = MagicMock()
        session.get.return_value = _response({}, status_code=503)
        with pytest.raises(TransientPriceFeedError):
            AlphaVantagePriceFeed('key', session=session).fetch_latest_price('AAPL')

    def test_connection_error_is_transient(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("boom")
        with pytest.raises(TransientPriceFeedError) as excinfo:
            AlphaVantagePriceFeed('key', session=session).fetch_latest_price('AAPL')
        assert excinfo.value.symbol == 'AAPL'


class TestBinancePriceFeed:
    def test_ticker_price(self):
        client = MagicMock()
        client.get_symbol_ticker.return_value = {'symbol': 'BTCUSDT', 'price': '42000.50'}
        assert BinancePriceFeed(client).fetch_latest_price('BTCUSDT') == pytest.approx(42000.5)
        client.get_symbol_ticker.assert_called_once_with(symbol='BTCUSDT')

    def test_rate_limit(self):
        client = MagicMock()
        client.get_symbol_ticker.side_effect = _binance_error(-1003, status_code=429)
        with pytest.raises(RateLimitError):
            BinancePriceFeed(client).fetch_latest_price('BTCUSDT')

    def test_invalid_symbol(self):
        client = MagicMock()
        client.get_symbol_ticker.side_effect = _binance_error(-1121, msg='Invalid symbol.')
        with pytest.raises(PriceDataError):
            BinancePriceFeed(client).fetch_latest_price('NOPE')

    def test_other_api_error_is_transient(self):
        client = MagicMock()
        client.get_symbol_ticker.side_effect = _binance_error(-1001, status_code=500)
        with pytest.raises(TransientPriceFeedError):
            BinancePriceFeed(client).fetch_latest_price('BTCUSDT')

    def test_malformed_payload(self):
        client = MagicMock()
        client.get_symbol_ticker.return_value = {'symbol': 'BTCUSDT'}
        with pytest.raises(PriceDataError):
            BinancePriceFeed(client).fetch_latest_price('BTCUSDT')


class TestRetryingPriceFeed:
    def test_transient_errors_back_off_exponentially(self):
        sleeps = []
        inner = ScriptedFeed([TransientPriceFeedError('X', 'down'), TransientPriceFeedError('X', 'down')])
        feed = RetryingPriceFeed(inner, max_retries=3, base_delay=1.0, sleep=sleeps.append)

        assert feed.fetch_latest_price('X') == 50.0
        assert sleeps == [1.0, 2.0]
        assert inner.calls == 3

    def test_rate_limit_waits_longer(self):
        sleeps = []
        inner = ScriptedFeed([RateLimitError('X', 'slow down')])
        feed = RetryingPriceFeed(inner, base_delay=1.0, sleep=sleeps.append)

        assert feed.fetch_latest_price('X') == 50.0
        assert sleeps == [8.0]

    def test_data_errors_not_retried(self):
        sleeps = []
        inner = ScriptedFeed([PriceDataError('X', 'bad')])
        feed = RetryingPriceFeed(inner, sleep=sleeps.append)

        with pytest.raises(PriceDataError):
            feed.fetch_latest_price('X')
        assert sleeps == []
        assert inner.calls == 1

    def test_gives_up_after_max_retries(self):
        sleeps = []
        inner = ScriptedFeed([TransientPriceFeedError('X', 'down')] * 5)
        feed = RetryingPriceFeed(inner, max_retries=2, base_delay=0.5, sleep=sleeps.append)

        with pytest.raises(TransientPriceFeedError):
            feed.fetch_latest_price('X')
        assert inner.calls == 3
        assert sleeps == [0.5, 1.0]
