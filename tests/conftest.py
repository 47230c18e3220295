"""
Shared fixtures for ledger, analytics and backtest tests.

Provides a controllable clock, an in-memory trade store that can be told to
fail, a scripted price feed and a factory for closed ledger trades.
"""

from datetime import datetime, timedelta

import pytest

from dti_trader.live.ledger import TradeLedger
from dti_trader.live.price_feed import PriceFeed
from dti_trader.live.store import TradeStore
from dti_trader.live.trade import LedgerTrade, STATUS_CLOSED


class FixedClock:
    """Callable clock returning a settable naive UTC time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class MemoryTradeStore(TradeStore):
    """Keeps serialized trades in memory; ``fail`` makes every save fail."""

    def __init__(self, trades=None):
        self.saved = [t.to_dict() for t in (trades or [])]
        self.save_calls = 0
        self.fail = False

    def load(self):
        return [LedgerTrade.from_dict(d) for d in self.saved]

    def save(self, trades):
        self.save_calls += 1
        if self.fail:
            return False
        self.saved = [t.to_dict() for t in trades]
        return True


class FakePriceFeed(PriceFeed):
    """Returns prices from a dict, raising configured errors per symbol."""

    def __init__(self, prices=None, errors=None):
        self.prices = dict(prices or {})
        self.errors = dict(errors or {})
        self.calls = []

    def fetch_latest_price(self, symbol):
        self.calls.append(symbol)
        if symbol in self.errors:
            raise self.errors[symbol]
        return self.prices[symbol]


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 10, 12, 0, 0))


@pytest.fixture
def store():
    return MemoryTradeStore()


@pytest.fixture
def price_feed():
    return FakePriceFeed()


@pytest.fixture
def ledger(store, price_feed, clock):
    return TradeLedger(store, price_feed=price_feed, clock=clock, max_workers=4)


@pytest.fixture
def events(ledger):
    """Events emitted by ``ledger`` after the fixture is created."""
    received = []
    ledger.subscribe(received.append)
    return received


@pytest.fixture
def make_closed_trade():
    """
    Factory for closed trades of 10 shares entered at 100.

    ``pl`` is the P/L percentage; the exit date defaults to ``days`` after
    the entry date.
    """
    counter = {'n': 0}

    def factory(pl, exit_date, days=5, symbol='AAPL', currency='$', reason='Manual Exit',
                investment=1000.0):
        counter['n'] += 1
        entry_price = 100.0
        shares = investment / entry_price
        exit_price = entry_price * (1 + pl / 100)
        return LedgerTrade(
            id=f"trade_test_{counter['n']}",
            symbol=symbol,
            stock_name=symbol,
            entry_date=exit_date - timedelta(days=days),
            entry_price=entry_price,
            investment_amount=investment,
            shares=shares,
            status=STATUS_CLOSED,
            currency_symbol=currency,
            exit_date=exit_date,
            exit_price=exit_price,
            exit_reason=reason,
            pl_percent=pl,
            pl_value=shares * exit_price - shares * entry_price
        )

    return factory
