"""Tests for the DTI indicator feed and weekly oscillator structures."""

import pandas as pd
import pytest

from dti_trader.signals import (
    DTIIndicatorFeed,
    WeeklyOscillator,
    WeeklyPeriod,
    build_weekly_periods,
    calculate_dti
)


class TestCalculateDTI:
    def test_length_matches_input(self):
        highs = [10, 11, 12, 11, 13, 14, 12]
        lows = [9, 10, 10, 9, 11, 12, 11]
        assert len(calculate_dti(highs, lows, 3, 2, 2)) == len(highs)

    def test_flat_prices_give_zero(self):
        dti = calculate_dti([10.0] * 20, [9.0] * 20, 5, 3, 2)
        assert (dti == 0).all()

    def test_rising_highs_give_plus_100(self):
        highs = [10.0 + i for i in range(20)]
        lows = [9.0] * 20
        dti = calculate_dti(highs, lows, 5, 3, 2)
        assert dti.iloc[0] == 0
        assert dti.iloc[1:].tolist() == pytest.approx([100.0] * 19)

    def test_falling_lows_give_minus_100(self):
        highs = [20.0] * 20
        lows = [19.0 - i * 0.5 for i in range(20)]
        dti = calculate_dti(highs, lows, 5, 3, 2)
        assert dti.iloc[1:].tolist() == pytest.approx([-100.0] * 19)

    def test_values_bounded(self):
        highs = [10, 12, 11, 14, 13, 15, 12, 16, 11, 17]
        lows = [9, 10, 8, 12, 11, 12, 10, 13, 9, 14]
        dti = calculate_dti(highs, lows, 3, 2, 2)
        assert dti.between(-100 - 1e-9, 100 + 1e-9).all()

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            calculate_dti([1, 2, 3], [1, 2])

    def test_non_positive_period_raises(self):
        with pytest.raises(ValueError):
            calculate_dti([1, 2, 3], [1, 2, 3], r=0)


class TestWeeklyPeriods:
    def test_fixed_size_chunks(self):
        periods = build_weekly_periods(10)
        assert periods == [WeeklyPeriod(0, 6), WeeklyPeriod(7, 9)]

    def test_empty(self):
        assert build_weekly_periods(0) == []

    def test_find_period_index(self):
        weekly = WeeklyOscillator(
            periods=[WeeklyPeriod(0, 2), WeeklyPeriod(3, 5)],
            period_values=[1.0, 2.0],
            daily_projection=[1.0, 1.0, 1.0, 2.0, 2.0, 2.0]
        )
        assert weekly.find_period_index(0) == 0
        assert weekly.find_period_index(4) == 1
        assert weekly.find_period_index(9) is None

    def test_is_rising_at(self):
        weekly = WeeklyOscillator(
            periods=[WeeklyPeriod(0, 2), WeeklyPeriod(3, 5)],
            period_values=[1.0, 2.0],
            daily_projection=[1.0] * 3 + [2.0] * 3
        )
        assert weekly.is_rising_at(1) is None
        assert weekly.is_rising_at(4) is True
        assert weekly.is_rising_at(9) is None

    def test_is_rising_at_falling(self):
        weekly = WeeklyOscillator(periods=[WeeklyPeriod(0, 2), WeeklyPeriod(3, 5)], period_values=[2.0, 1.0])
        assert weekly.is_rising_at(4) is False

    def test_value_at_without_projection(self):
        weekly = WeeklyOscillator(periods=[WeeklyPeriod(0, 2), WeeklyPeriod(3, 5)], period_values=[1.0, 2.0])
        assert weekly.value_at(1) == 1.0
        assert weekly.value_at(5) == 2.0
        assert weekly.value_at(6) is None


class TestDTIIndicatorFeed:
    def test_weekly_projection_aligned(self):
        n = 15
        dates = list(pd.date_range("2024-01-01", periods=n, freq="D"))
        highs = [100 + i for i in range(n)]
        lows = [95 + i for i in range(n)]

        weekly = DTIIndicatorFeed().compute_weekly_oscillator(dates, highs, lows, 3, 2, 2)

        assert len(weekly.periods) == 3
        assert len(weekly.period_values) == 3
        assert len(weekly.daily_projection) == n
        assert weekly.daily_projection[:7] == [weekly.period_values[0]] * 7
        assert weekly.daily_projection[14] == weekly.period_values[2]

    def test_daily_oscillator_is_list(self):
        result = DTIIndicatorFeed().compute_oscillator([1, 2, 3], [0.5, 1, 2], 2, 2, 2)
        assert isinstance(result, list)
        assert len(result) == 3

    def test_weekly_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            DTIIndicatorFeed().compute_weekly_oscillator([1, 2], [1, 2, 3], [1, 2, 3], 2, 2, 2)
