# -*- coding: utf-8 -*-
"""
Price series input for the backtest engine.

Bundles dates, prices, the daily oscillator and the weekly oscillator into
one validated structure.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd

from dti_trader.signals.base import WeeklyOscillator


class BacktestInputError(ValueError):
    """Raised when backtest inputs are malformed."""


def _to_timestamp(value) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


@dataclass
class PriceSeries:
    """
    Parallel daily sequences for one instrument.

    Attributes
    ----------
    dates : list of pd.Timestamp
        Trading days in ascending order.
    prices : list of float
        Closing prices.
    daily_oscillator : list of float
        Daily DTI values.
    weekly : WeeklyOscillator
        Weekly-aggregated DTI aligned to ``dates``.
    """

    dates: List[pd.Timestamp]
    prices: List[float]
    daily_oscillator: List[float]
    weekly: WeeklyOscillator

    @classmethod
    def from_sequences(cls, dates: Sequence, prices: Sequence[float],
                       daily_oscillator: Sequence[float],
                       weekly: Optional[WeeklyOscillator] = None) -> 'PriceSeries':
        """Build a series, coercing dates to timestamps and values to floats."""
        try:
            parsed_dates = [_to_timestamp(d) for d in dates]
            parsed_prices = [float(p) for p in prices]
            parsed_osc = [float(v) for v in daily_oscillator]
        except (TypeError, ValueError) as e:
            raise BacktestInputError(f"Invalid backtest input: {e}") from e

        return cls(
            dates=parsed_dates,
            prices=parsed_prices,
            daily_oscillator=parsed_osc,
            weekly=weekly if weekly is not None else WeeklyOscillator()
        )

    def __len__(self) -> int:
        return len(self.dates)

    def validate(self):
        """
        Check alignment of the parallel sequences.

        Raises
        ------
        BacktestInputError
            On empty input, length mismatch or malformed weekly periods.
        """
        n = len(self.dates)
        if n == 0:
            raise BacktestInputError("Price series is empty")
        if len(self.prices) != n or len(self.daily_oscillator) != n:
            raise BacktestInputError(
                f"Length mismatch: dates={n}, prices={len(self.prices)}, "
                f"oscillator={len(self.daily_oscillator)}"
            )
        if self.weekly.daily_projection and len(self.weekly.daily_projection) != n:
            raise BacktestInputError(
                f"Weekly projection length {len(self.weekly.daily_projection)} != {n}"
            )
        if len(self.weekly.period_values) != len(self.weekly.periods):
            raise BacktestInputError("Weekly periods and values length mismatch")

        previous_end = -1
        for period in self.weekly.periods:
            if period.start_index != previous_end + 1 or period.end_index < period.start_index:
                raise BacktestInputError(
                    f"Weekly periods must be contiguous and ordered, got "
                    f"[{period.start_index}, {period.end_index}] after end {previous_end}"
                )
            previous_end = period.end_index

        if any(not math.isfinite(p) or p <= 0 for p in self.prices):
            raise BacktestInputError("Prices must be positive finite numbers")
