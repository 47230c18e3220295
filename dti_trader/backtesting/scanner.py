# -*- coding: utf-8 -*-
"""
Multi-symbol signal scanner.

Backtests every symbol of a universe with the same parameters and collects
the trades still open at the end of each history. An open trade is a live
buying opportunity: its entry date is the date the signal fired. Signals are
reported newest first and grouped by age (last 7 days, 7-14 days, 14-28 days).
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from dti_trader.backtesting.config import BacktestParams
from dti_trader.backtesting.engine import BacktestEngine, SimulatedTrade, calendar_days_between
from dti_trader.backtesting.series import BacktestInputError, PriceSeries
from dti_trader.signals.base import IndicatorFeed


logger = logging.getLogger(__name__)


# Bucket name -> (min age exclusive, max age inclusive) in days
SIGNAL_AGE_BUCKETS: Dict[str, Tuple[int, int]] = {
    'last_7_days': (-1, 7),
    '7_14_days': (7, 14),
    '14_28_days': (14, 28),
}


@dataclass
class ScanSignal:
    """Open backtest trade found for one symbol."""

    symbol: str
    name: str
    trade: SimulatedTrade
    age_days: int

    @property
    def signal_date(self) -> pd.Timestamp:
        return self.trade.signal_date if self.trade.signal_date is not None else self.trade.entry_date

    def to_dict(self) -> Dict[str, Any]:
        row = {'symbol': self.symbol, 'name': self.name, 'age_days': self.age_days}
        row.update(self.trade.to_dict())
        return row


@dataclass
class ScanResult:
    """Signals across the scanned universe, newest first."""

    as_of: pd.Timestamp
    signals: List[ScanSignal] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    scanned: int = 0

    def buckets(self) -> Dict[str, List[ScanSignal]]:
        """Signals grouped by age. Signals older than 28 days are left out."""
        grouped: Dict[str, List[ScanSignal]] = {name: [] for name in SIGNAL_AGE_BUCKETS}
        for signal in self.signals:
            for name, (low, high) in SIGNAL_AGE_BUCKETS.items():
                if low < signal.age_days <= high:
                    grouped[name].append(signal)
                    break
        return grouped

    def get(self, symbol: str) -> Optional[ScanSignal]:
        for signal in self.signals:
            if signal.symbol == symbol:
                return signal
        return None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([s.to_dict() for s in self.signals])


class SignalScanner:
    """Runs one backtest per symbol and keeps the open trades."""

    def __init__(self, feed: IndicatorFeed, params: Optional[BacktestParams] = None,
                 max_workers: Optional[int] = None):
        """
        Initialize scanner.

        Parameters
        ----------
        feed : IndicatorFeed
            Source of daily and weekly oscillator series.
        params : BacktestParams, optional
            Strategy parameters applied to every symbol.
        max_workers : int or None, optional
            Thread pool size. None or 1 scans sequentially.
        """
        self.feed = feed
        self.params = params if params is not None else BacktestParams()
        self.max_workers = max_workers

    def scan_symbol(self, frame: pd.DataFrame) -> Optional[SimulatedTrade]:
        """
        Backtest one symbol's daily candles.

        Parameters
        ----------
        frame : pd.DataFrame
            Date-indexed candles with ``high``, ``low`` and ``close`` columns.

        Returns
        -------
        SimulatedTrade or None
            The trade still open at the end of the data.
        """
        missing = [col for col in ('high', 'low', 'close') if col not in frame.columns]
        if missing:
            raise BacktestInputError(f"Candles missing columns: {missing}")

        params = self.params
        dates = list(frame.index)
        highs = frame['high'].astype(float).tolist()
        lows = frame['low'].astype(float).tolist()
        closes = frame['close'].astype(float).tolist()

        daily = self.feed.compute_oscillator(highs, lows, params.r, params.s, params.u)
        weekly = self.feed.compute_weekly_oscillator(dates, highs, lows, params.r, params.s, params.u)
        series = PriceSeries.from_sequences(dates, closes, daily, weekly)
        return BacktestEngine(params).run(series).active_trade

    def scan(self, universe: Mapping[str, pd.DataFrame], names: Optional[Mapping[str, str]] = None,
             as_of=None) -> ScanResult:
        """
        Scan every symbol of ``universe``.

        A symbol whose data cannot be backtested is recorded in
        ``ScanResult.failed`` and the scan carries on.

        Parameters
        ----------
        universe : mapping of str to pd.DataFrame
            Daily candles per symbol.
        names : mapping of str to str, optional
            Display names per symbol. Defaults to the symbol.
        as_of : datetime-like, optional
            Reference date for signal ages. Defaults to now (UTC).
        """
        names = names or {}
        as_of = pd.Timestamp(as_of) if as_of is not None else pd.Timestamp.now(tz='UTC').tz_localize(None)
        symbols = list(universe)
        logger.info(f"Scanning {len(symbols)} symbol(s) for open DTI signals")

        def run(symbol: str):
            try:
                return symbol, self.scan_symbol(universe[symbol]), None
            except (ValueError, KeyError) as e:
                return symbol, None, str(e)

        if self.max_workers and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(run, symbols))
        else:
            outcomes = [run(symbol) for symbol in symbols]

        result = ScanResult(as_of=as_of, scanned=len(symbols))
        for symbol, trade, error in outcomes:
            if error is not None:
                logger.error(f"Error scanning {symbol}: {error}")
                result.failed[symbol] = error
                continue
            if trade is None:
                continue
            signal_date = trade.signal_date if trade.signal_date is not None else trade.entry_date
            result.signals.append(ScanSignal(
                symbol=symbol,
                name=names.get(symbol, symbol),
                trade=trade,
                age_days=calendar_days_between(signal_date, as_of)
            ))

        result.signals.sort(key=lambda s: s.signal_date, reverse=True)
        logger.info(
            f"Scan complete: {len(result.signals)} open signal(s) in {len(symbols)} symbol(s)"
            + (f", {len(result.failed)} failed" if result.failed else "")
        )
        return result
