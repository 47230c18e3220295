# -*- coding: utf-8 -*-
"""
Oscillator sources for the DTI strategy.

This package defines the indicator feed contract consumed by the backtest
engine and the optimizer, plus a local pandas implementation of the DTI.
"""

from dti_trader.signals.base import IndicatorFeed, WeeklyOscillator, WeeklyPeriod
from dti_trader.signals.dti import (
    DTIIndicatorFeed,
    calculate_dti,
    build_weekly_periods,
    WEEKLY_PERIOD_DAYS
)

__all__ = [
    'IndicatorFeed',
    'WeeklyOscillator',
    'WeeklyPeriod',
    'DTIIndicatorFeed',
    'calculate_dti',
    'build_weekly_periods',
    'WEEKLY_PERIOD_DAYS'
]
