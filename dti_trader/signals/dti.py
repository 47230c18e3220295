# -*- coding: utf-8 -*-
"""
Directional Trend Index (DTI) indicator feed.

Reference implementation of William Blau's DTI computed with pandas
exponential moving averages. Used by the backtest script and the parameter
optimizer when oscillator values are not supplied precomputed.
"""

import logging
from typing import List, Sequence

import numpy as np
import pandas as pd

from dti_trader.signals.base import IndicatorFeed, WeeklyOscillator, WeeklyPeriod


logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Constants
# ============================================================================

WEEKLY_PERIOD_DAYS = 7  # Trading days aggregated into one weekly bar


# ============================================================================
# DTI Calculation
# ============================================================================

def _triple_ema(series: pd.Series, r: int, s: int, u: int) -> pd.Series:
    """Apply three nested exponential moving averages."""
    first = series.ewm(span=r, adjust=False).mean()
    second = first.ewm(span=s, adjust=False).mean()
    return second.ewm(span=u, adjust=False).mean()


def calculate_dti(highs: Sequence[float], lows: Sequence[float],
                  r: int = 14, s: int = 10, u: int = 5) -> pd.Series:
    """
    Calculate the DTI oscillator.

    HMU is the positive part of the change in highs, LMD the positive part of
    the change in lows (downwards). The oscillator is the triple-smoothed
    ``HMU - LMD`` divided by the triple-smoothed absolute value, scaled
    to [-100, 100].

    Parameters
    ----------
    highs, lows : sequence of float
        High and low prices.
    r, s, u : int
        Smoothing periods.

    Returns
    -------
    pd.Series
        DTI values, 0 where the denominator vanishes.
    """
    if len(highs) != len(lows):
        raise ValueError(f"highs and lows length mismatch: {len(highs)} != {len(lows)}")
    if min(r, s, u) <= 0:
        raise ValueError(f"Smoothing periods must be positive, got r={r}, s={s}, u={u}")

    high = pd.Series(highs, dtype=float).reset_index(drop=True)
    low = pd.Series(lows, dtype=float).reset_index(drop=True)

    hmu = (high - high.shift(1)).clip(lower=0).fillna(0.0)
    lmd = (low.shift(1) - low).clip(lower=0).fillna(0.0)
    x = hmu - lmd

    numerator = _triple_ema(x, r, s, u)
    denominator = _triple_ema(x.abs(), r, s, u)

    dti = pd.Series(np.zeros(len(x)), index=x.index)
    nonzero = denominator != 0
    dti[nonzero] = 100.0 * numerator[nonzero] / denominator[nonzero]
    return dti


def build_weekly_periods(length: int, period_days: int = WEEKLY_PERIOD_DAYS) -> List[WeeklyPeriod]:
    """Split ``length`` trading days into consecutive fixed-size periods."""
    return [
        WeeklyPeriod(start_index=start, end_index=min(start + period_days, length) - 1)
        for start in range(0, length, period_days)
    ]


class DTIIndicatorFeed(IndicatorFeed):
    """Indicator feed computing the DTI locally from high/low prices."""

    def __init__(self, period_days: int = WEEKLY_PERIOD_DAYS):
        self.period_days = period_days

    def compute_oscillator(self, highs, lows, r, s, u):
        return calculate_dti(highs, lows, r, s, u).tolist()

    def compute_weekly_oscillator(self, dates, highs, lows, r, s, u):
        """
        Aggregate daily bars into weekly bars and compute the DTI on them.

        Each weekly bar takes the highest high and lowest low of its days.
        The resulting value is projected back onto every day of the period.
        """
        if not (len(dates) == len(highs) == len(lows)):
            raise ValueError("dates, highs and lows must have the same length")

        periods = build_weekly_periods(len(highs), self.period_days)
        if not periods:
            return WeeklyOscillator()

        high = pd.Series(highs, dtype=float).reset_index(drop=True)
        low = pd.Series(lows, dtype=float).reset_index(drop=True)
        weekly_highs = [high.iloc[p.start_index:p.end_index + 1].max() for p in periods]
        weekly_lows = [low.iloc[p.start_index:p.end_index + 1].min() for p in periods]

        period_values = calculate_dti(weekly_highs, weekly_lows, r, s, u).tolist()

        daily_projection = []
        for period, value in zip(periods, period_values):
            daily_projection.extend([value] * (period.end_index - period.start_index + 1))

        logger.debug(f"Computed weekly DTI over {len(periods)} periods (r={r}, s={s}, u={u})")
        return WeeklyOscillator(
            periods=periods,
            period_values=period_values,
            daily_projection=daily_projection
        )
