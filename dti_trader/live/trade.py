# -*- coding: utf-8 -*-
"""
Ledger trade record.

A ``LedgerTrade`` is a real position tracked by the trade ledger. Derived
valuation fields are only ever set through ``refresh_valuation`` and
``apply_exit`` so they stay consistent with prices and share counts.
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pandas as pd


STATUS_ACTIVE = "active"
STATUS_CLOSED = "closed"

# Interchange key -> attribute name
FIELD_MAP = {
    'id': 'id',
    'status': 'status',
    'stockName': 'stock_name',
    'symbol': 'symbol',
    'currencySymbol': 'currency_symbol',
    'entryDate': 'entry_date',
    'entryPrice': 'entry_price',
    'currentPrice': 'current_price',
    'investmentAmount': 'investment_amount',
    'shares': 'shares',
    'currentValue': 'current_value',
    'stopLossPrice': 'stop_loss_price',
    'targetPrice': 'target_price',
    'stopLossPercent': 'stop_loss_percent',
    'takeProfitPercent': 'take_profit_percent',
    'squareOffDate': 'square_off_date',
    'holdingDays': 'holding_days',
    'currentPLPercent': 'current_pl_percent',
    'currentPLValue': 'current_pl_value',
    'notes': 'notes',
    'exitDate': 'exit_date',
    'exitPrice': 'exit_price',
    'exitReason': 'exit_reason',
    'plPercent': 'pl_percent',
    'plValue': 'pl_value'
}

DATE_FIELDS = ('entry_date', 'square_off_date', 'exit_date')
EXIT_FIELDS = ('exit_date', 'exit_price', 'exit_reason', 'pl_percent', 'pl_value')
# Zero-filled when unparseable, other numeric fields become None
REQUIRED_NUMERIC_FIELDS = ('entry_price', 'shares', 'investment_amount')
NUMERIC_FIELDS = ('entry_price', 'stop_loss_price', 'target_price', 'investment_amount',
                  'shares', 'current_price', 'current_value', 'stop_loss_percent',
                  'take_profit_percent', 'current_pl_percent', 'current_pl_value',
                  'exit_price', 'pl_percent', 'pl_value')

MARKET_CURRENCIES = {
    'usStocks': '$',
    'ftse100': '£',
    'nifty50': '₹',
    'niftyNext50': '₹',
    'indices': '₹'
}
DEFAULT_CURRENCY = '₹'


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def currency_symbol_for(market_or_symbol: Optional[str]) -> str:
    """
    Deduce the currency tag from a market name or a ticker symbol.

    Known market names map directly. Tickers ending in ``.L`` are London
    listings, any other exchange suffix is treated as Indian, and a bare
    ticker is assumed to be a US listing.
    """
    if not isinstance(market_or_symbol, str):
        return DEFAULT_CURRENCY
    if market_or_symbol in MARKET_CURRENCIES:
        return MARKET_CURRENCIES[market_or_symbol]
    if '.' in market_or_symbol:
        if market_or_symbol.endswith('.L'):
            return '£'
        return '₹'
    return '$'


def parse_datetime(value) -> Optional[datetime]:
    """Parse a date/datetime/ISO string into a naive UTC datetime."""
    if value is None or value == '':
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if ts is pd.NaT:
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts.to_pydatetime()


def to_float(value, default: Optional[float] = None) -> Optional[float]:
    """Lenient float conversion; ``default`` for missing or invalid input."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result):
        return default
    return result


def generate_trade_id(now: datetime) -> str:
    """Build an id of the form ``trade_<epoch ms>_<random 0-999>``."""
    epoch_ms = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"trade_{epoch_ms}_{random.randint(0, 999)}"


def whole_days_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Floored number of days from ``start`` to ``end``."""
    if start is None or end is None:
        return 0
    return math.floor((end - start).total_seconds() / 86400)


@dataclass
class LedgerTrade:
    """One real trade held in the ledger."""

    id: str
    symbol: str
    stock_name: str
    entry_date: datetime
    entry_price: float
    investment_amount: float
    shares: float
    status: str = STATUS_ACTIVE
    currency_symbol: str = ''
    current_price: Optional[float] = None
    current_value: Optional[float] = None
    stop_loss_price: Optional[float] = None
    target_price: Optional[float] = None
    stop_loss_percent: Optional[float] = None
    take_profit_percent: Optional[float] = None
    square_off_date: Optional[datetime] = None
    holding_days: int = 0
    current_pl_percent: float = 0.0
    current_pl_value: float = 0.0
    notes: str = ''

    # Exit (closed trades only)
    exit_date: Optional[datetime] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[str] = None
    pl_percent: Optional[float] = None
    pl_value: Optional[float] = None

    # Unrecognized keys from imported documents, written back on export
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status != STATUS_ACTIVE

    def refresh_valuation(self, now: datetime):
        """
        Recompute mark-to-market fields for an active trade.

        Parameters
        ----------
        now : datetime
            Wall-clock time used for holding days.
        """
        if not self.is_active:
            return
        if self.current_price is None:
            self.current_price = self.entry_price

        self.current_value = self.shares * self.current_price
        if self.entry_price:
            self.current_pl_percent = (self.current_price - self.entry_price) / self.entry_price * 100
        else:
            self.current_pl_percent = 0.0
        self.current_pl_value = self.shares * self.current_price - self.shares * self.entry_price
        self.holding_days = max(0, whole_days_between(self.entry_date, now))

    def apply_exit(self, exit_price: float, reason: str, exit_date: datetime):
        """Close the trade at ``exit_price`` and set realized P/L."""
        self.status = STATUS_CLOSED
        self.exit_date = exit_date
        self.exit_price = exit_price
        self.exit_reason = reason
        self.pl_percent = (exit_price - self.entry_price) / self.entry_price * 100
        self.pl_value = self.shares * exit_price - self.shares * self.entry_price

    def closed_holding_days(self) -> int:
        """Days from entry to exit for a closed trade."""
        return whole_days_between(self.entry_date, self.exit_date)

    def copy(self) -> 'LedgerTrade':
        return LedgerTrade.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert trade to its interchange dictionary.

        Dates are ISO-8601 strings. Exit fields are omitted while the
        trade is active.
        """
        data: Dict[str, Any] = dict(self.extra)
        for key, attr in FIELD_MAP.items():
            value = getattr(self, attr)
            if attr in EXIT_FIELDS and value is None:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerTrade':
        """
        Build a trade from an interchange dictionary.

        Dates are parsed, numeric fields coerced to float (entry price,
        shares and investment amount fall back to 0 when invalid) and
        unknown keys are preserved in ``extra``.
        """
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            attr = FIELD_MAP.get(key)
            if attr is None:
                extra[key] = value
            else:
                values[attr] = value

        for attr in DATE_FIELDS:
            if attr in values:
                values[attr] = parse_datetime(values[attr])
        for attr in NUMERIC_FIELDS:
            if attr in values:
                default = 0.0 if attr in REQUIRED_NUMERIC_FIELDS else None
                values[attr] = to_float(values[attr], default)
        for attr in REQUIRED_NUMERIC_FIELDS:
            values.setdefault(attr, 0.0)

        holding = to_float(values.get('holding_days'), 0.0)
        values['holding_days'] = int(holding)
        for attr in ('current_pl_percent', 'current_pl_value'):
            if values.get(attr) is None:
                values[attr] = 0.0

        values.setdefault('id', '')
        values.setdefault('symbol', '')
        values.setdefault('stock_name', values.get('symbol', ''))
        values.setdefault('entry_date', None)
        values['status'] = values.get('status') or STATUS_ACTIVE
        values['notes'] = values.get('notes') or ''
        values['currency_symbol'] = values.get('currency_symbol') or ''
        return cls(extra=extra, **values)
