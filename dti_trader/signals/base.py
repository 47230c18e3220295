# -*- coding: utf-8 -*-
"""
Indicator feed interface and weekly oscillator structures.

Defines the contract that every oscillator source must follow. The backtest
engine and the parameter optimizer only consume these structures; how the
oscillator values are produced (local calculation, remote service, CSV
column) is up to the feed implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence


@dataclass
class WeeklyPeriod:
    """Contiguous block of trading days aggregated into one weekly bar."""

    start_index: int
    end_index: int  # inclusive

    def contains(self, index: int) -> bool:
        return self.start_index <= index <= self.end_index


@dataclass
class WeeklyOscillator:
    """
    Weekly-aggregated oscillator aligned to a daily series.

    Attributes
    ----------
    periods : list of WeeklyPeriod
        Time-ordered, contiguous, non-overlapping periods.
    period_values : list of float
        One oscillator value per period.
    daily_projection : list of float
        Per trading day, the value of the period containing that day.
    """

    periods: List[WeeklyPeriod] = field(default_factory=list)
    period_values: List[float] = field(default_factory=list)
    daily_projection: List[float] = field(default_factory=list)

    def find_period_index(self, day_index: int) -> Optional[int]:
        """
        Locate the weekly period containing a trading day.

        Parameters
        ----------
        day_index : int
            Index into the daily series.

        Returns
        -------
        int or None
            Period index, or None if no period covers the day.
        """
        for p, period in enumerate(self.periods):
            if period.contains(day_index):
                return p
        return None

    def value_at(self, day_index: int) -> Optional[float]:
        """Weekly value seen on a trading day, None if no period covers it."""
        if self.daily_projection:
            return self.daily_projection[day_index]
        p = self.find_period_index(day_index)
        return self.period_values[p] if p is not None else None

    def is_rising_at(self, day_index: int) -> Optional[bool]:
        """
        Compare the weekly value at ``day_index`` with the preceding period.

        Returns None when the day has no enclosing period or the enclosing
        period is the first one (nothing to compare against).
        """
        p = self.find_period_index(day_index)
        if p is None or p == 0:
            return None
        current = self.value_at(day_index)
        return current is not None and current > self.period_values[p - 1]


class IndicatorFeed(ABC):
    """
    Abstract source of DTI oscillator values.

    Implementations are pure with respect to their inputs: the same highs,
    lows and smoothing periods always yield the same series.
    """

    @abstractmethod
    def compute_oscillator(self, highs: Sequence[float], lows: Sequence[float],
                           r: int, s: int, u: int) -> List[float]:
        """
        Compute the daily oscillator.

        Parameters
        ----------
        highs, lows : sequence of float
            Daily high and low prices, same length.
        r, s, u : int
            Smoothing periods of the three nested moving averages.

        Returns
        -------
        list of float
            One value per input day, roughly in [-100, 100].
        """

    @abstractmethod
    def compute_weekly_oscillator(self, dates: Sequence, highs: Sequence[float],
                                  lows: Sequence[float], r: int, s: int,
                                  u: int) -> WeeklyOscillator:
        """Compute the weekly-aggregated oscillator with period boundaries."""
