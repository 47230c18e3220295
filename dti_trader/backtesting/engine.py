# -*- coding: utf-8 -*-
"""
DTI backtest engine.

Replays a daily price/oscillator series bar by bar and produces the completed
simulated trades plus at most one trade still open at the end of the data.

Entry rules
-----------
- Daily oscillator below the entry threshold and rising versus the prior day.
- Weekly filter (optional): the weekly value at the current day is higher
  than the value of the preceding weekly period.
- No trade is open and the date is past the warm-up boundary.

Exit rules (first satisfied wins)
---------------------------------
Take Profit, then Stop Loss, then Time Exit.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from dti_trader.backtesting.config import BacktestParams, WARMUP_MONTHS
from dti_trader.backtesting.exit_rules import backtest_exit_reason
from dti_trader.backtesting.series import BacktestInputError, PriceSeries
from dti_trader.signals.base import WeeklyOscillator


logger = logging.getLogger(__name__)


@dataclass
class SimulatedTrade:
    """One trade produced by the backtest."""

    entry_date: pd.Timestamp
    entry_price: float
    entry_oscillator: float
    entry_weekly_oscillator: Optional[float]
    current_price: float
    current_pl_percent: float = 0.0
    holding_days: int = 0
    signal_date: Optional[pd.Timestamp] = None
    exit_date: Optional[pd.Timestamp] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[str] = None
    pl_percent: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.exit_date is None or self.exit_reason is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert trade to dictionary."""
        return {
            'entry_date': self.entry_date,
            'entry_price': self.entry_price,
            'entry_oscillator': self.entry_oscillator,
            'entry_weekly_oscillator': self.entry_weekly_oscillator,
            'current_price': self.current_price,
            'current_pl_percent': self.current_pl_percent,
            'holding_days': self.holding_days,
            'signal_date': self.signal_date,
            'exit_date': self.exit_date,
            'exit_price': self.exit_price,
            'exit_reason': self.exit_reason,
            'pl_percent': self.pl_percent
        }


@dataclass
class WarmupInfo:
    """Period at the start of the data during which no entries are taken."""

    start_date: pd.Timestamp
    end_date: pd.Timestamp


@dataclass
class BacktestResult:
    """Output of one backtest run."""

    completed_trades: List[SimulatedTrade] = field(default_factory=list)
    active_trade: Optional[SimulatedTrade] = None
    warmup: Optional[WarmupInfo] = None

    @property
    def all_trades(self) -> List[SimulatedTrade]:
        trades = list(self.completed_trades)
        if self.active_trade is not None:
            trades.append(self.active_trade)
        return trades


def calendar_days_between(start: pd.Timestamp, end: pd.Timestamp) -> int:
    """Whole calendar days elapsed from ``start`` to ``end`` (floored)."""
    return int((end - start) // pd.Timedelta(days=1))


def warmup_end_date(first_date: pd.Timestamp, months: int = WARMUP_MONTHS) -> pd.Timestamp:
    """
    First date on which entries are allowed.

    Adds calendar months without clamping to month end: a day that does not
    exist in the target month rolls over into the following month, so
    2023-08-31 plus six months is 2024-03-02.
    """
    end = first_date + pd.DateOffset(months=months)
    if end.day < first_date.day:
        end += pd.Timedelta(days=first_date.day - end.day)
    return end


class BacktestEngine:
    """Single-position DTI backtest state machine."""

    def __init__(self, params: Optional[BacktestParams] = None):
        """
        Initialize backtest engine.

        Parameters
        ----------
        params : BacktestParams, optional
            Strategy parameters. Defaults to ``BacktestParams()``.
        """
        self.params = params if params is not None else BacktestParams()

    def run(self, series: PriceSeries) -> BacktestResult:
        """
        Replay ``series`` and collect trades.

        Parameters
        ----------
        series : PriceSeries
            Dates, prices and oscillators.

        Returns
        -------
        BacktestResult
            Completed trades in entry order, the open trade (if any) and the
            warm-up window.

        Raises
        ------
        BacktestInputError
            If the series or the parameters are invalid.
        """
        try:
            self.params.validate()
        except ValueError as e:
            raise BacktestInputError(str(e)) from e
        series.validate()

        params = self.params
        dates = series.dates
        prices = series.prices
        osc = series.daily_oscillator
        weekly = series.weekly

        first_date = dates[0]
        warmup_end = warmup_end_date(first_date)
        result = BacktestResult(warmup=WarmupInfo(start_date=first_date, end_date=warmup_end))

        active: Optional[SimulatedTrade] = None
        previous_trade_completed = False

        for i in range(1, len(dates)):
            current_date = dates[i]
            current_price = prices[i]

            if active is not None:
                holding_days = calendar_days_between(active.entry_date, current_date)
                pl_percent = (current_price - active.entry_price) / active.entry_price * 100

                active.current_price = current_price
                active.current_pl_percent = pl_percent
                active.holding_days = holding_days

                reason = backtest_exit_reason(
                    pl_percent, holding_days,
                    params.take_profit_percent, params.stop_loss_percent,
                    params.max_holding_days
                )
                if reason is not None:
                    active.exit_date = current_date
                    active.exit_price = current_price
                    active.pl_percent = pl_percent
                    active.exit_reason = reason
                    result.completed_trades.append(active)
                    logger.debug(
                        f"Exit {reason} on {current_date.date()} @ {current_price:.4f} "
                        f"({pl_percent:+.2f}%, {holding_days}d)"
                    )
                    active = None
                    previous_trade_completed = True
                # A bar that is in a trade (or just left one) never opens another
                continue

            if self._entry_signal(i, osc, weekly, params) and \
                    (not result.completed_trades or previous_trade_completed) and \
                    current_date >= warmup_end:
                active = SimulatedTrade(
                    entry_date=current_date,
                    entry_price=current_price,
                    entry_oscillator=osc[i],
                    entry_weekly_oscillator=weekly.value_at(i),
                    current_price=current_price,
                    current_pl_percent=0.0,
                    holding_days=0,
                    signal_date=current_date
                )
                previous_trade_completed = False
                logger.debug(f"Entry on {current_date.date()} @ {current_price:.4f} (DTI {osc[i]:.2f})")

        result.active_trade = active
        logger.info(
            f"Backtest complete: {len(result.completed_trades)} completed trade(s), "
            f"{'1 open' if active else 'no open'} trade"
        )
        return result

    def _entry_signal(self, i: int, osc: List[float], weekly: WeeklyOscillator,
                      params: BacktestParams) -> bool:
        """Oscillator entry conditions at bar ``i`` (warm-up excluded)."""
        if not (osc[i] < params.entry_threshold and osc[i] > osc[i - 1]):
            return False

        # No preceding period means nothing to compare against
        if params.use_weekly_filter and weekly.is_rising_at(i) is False:
            return False
        return True


def simulate(dates: Sequence, prices: Sequence[float], daily_oscillator: Sequence[float],
             weekly: Optional[WeeklyOscillator], params: Optional[BacktestParams] = None) -> BacktestResult:
    """
    Run a backtest over raw sequences.

    Convenience wrapper building a ``PriceSeries`` and running
    ``BacktestEngine``. Raises ``BacktestInputError`` on malformed input.
    """
    if dates is None or prices is None or daily_oscillator is None:
        raise BacktestInputError("dates, prices and oscillator are required")
    if not (len(dates) == len(prices) == len(daily_oscillator)):
        raise BacktestInputError(
            f"Length mismatch: dates={len(dates)}, prices={len(prices)}, "
            f"oscillator={len(daily_oscillator)}"
        )
    series = PriceSeries.from_sequences(dates, prices, daily_oscillator, weekly)
    return BacktestEngine(params).run(series)
