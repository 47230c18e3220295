# -*- coding: utf-8 -*-
"""
Grid-search parameter optimizer for the DTI strategy.

Every combination of the parameter ranges is backtested. Oscillator series
depend only on the smoothing periods, so they are computed once per
``(r, s, u)`` triple and shared by all exit/threshold combinations.
"""

import itertools
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from dti_trader.backtesting.config import BacktestParams
from dti_trader.backtesting.engine import BacktestEngine
from dti_trader.backtesting.metrics import BacktestMetrics, compute_backtest_metrics
from dti_trader.backtesting.series import BacktestInputError, PriceSeries
from dti_trader.signals.base import IndicatorFeed


logger = logging.getLogger(__name__)


MIN_TRADES_FOR_BEST = 5  # Combinations with fewer completed trades cannot win


@dataclass
class ParameterRanges:
    """Candidate values for each optimized parameter."""

    r: List[int] = field(default_factory=lambda: [7, 14, 21])
    s: List[int] = field(default_factory=lambda: [5, 10, 15])
    u: List[int] = field(default_factory=lambda: [3, 5, 7])
    entry_threshold: List[float] = field(default_factory=lambda: [-50, -40, -30])
    take_profit_percent: List[float] = field(default_factory=lambda: [5, 8, 10])
    stop_loss_percent: List[float] = field(default_factory=lambda: [3, 5, 7])
    max_holding_days: List[int] = field(default_factory=lambda: [15, 30, 45])
    use_weekly_filter: bool = True  # Held fixed across the grid

    def combinations(self) -> List[BacktestParams]:
        """Expand the grid into explicit parameter sets (r varies slowest)."""
        return [
            BacktestParams(
                r=r, s=s, u=u,
                entry_threshold=threshold,
                take_profit_percent=tp,
                stop_loss_percent=sl,
                max_holding_days=days,
                use_weekly_filter=self.use_weekly_filter
            )
            for r, s, u, threshold, tp, sl, days in itertools.product(
                self.r, self.s, self.u, self.entry_threshold,
                self.take_profit_percent, self.stop_loss_percent, self.max_holding_days
            )
        ]

    def size(self) -> int:
        return (len(self.r) * len(self.s) * len(self.u) * len(self.entry_threshold)
                * len(self.take_profit_percent) * len(self.stop_loss_percent)
                * len(self.max_holding_days))


def score_metrics(metrics: BacktestMetrics) -> float:
    """Composite score: total return x win fraction x profit factor."""
    return metrics.total_return * (metrics.win_rate / 100) * metrics.profit_factor


@dataclass
class EvaluationResult:
    """Backtest outcome for one parameter combination."""

    params: BacktestParams
    metrics: BacktestMetrics
    score: float

    def to_dict(self) -> Dict[str, Any]:
        row = self.params.to_dict()
        row.update(self.metrics.to_dict())
        row['score'] = self.score
        return row


@dataclass
class OptimizationResult:
    """Best combination plus every evaluated combination in grid order."""

    best: Optional[EvaluationResult]
    results: List[EvaluationResult] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        """All results as a DataFrame, highest score first."""
        frame = pd.DataFrame([r.to_dict() for r in self.results])
        if frame.empty:
            return frame
        return frame.sort_values('score', ascending=False, kind='mergesort').reset_index(drop=True)


class ParameterOptimizer:
    """Exhaustive grid search over ``ParameterRanges``."""

    def __init__(self, feed: IndicatorFeed, min_trades: int = MIN_TRADES_FOR_BEST,
                 max_workers: Optional[int] = None):
        """
        Initialize optimizer.

        Parameters
        ----------
        feed : IndicatorFeed
            Source of daily and weekly oscillator series.
        min_trades : int, default 5
            Minimum completed trades for a combination to be eligible as best.
        max_workers : int or None, optional
            Thread pool size for evaluating combinations. None or 1 runs
            sequentially.
        """
        self.feed = feed
        self.min_trades = min_trades
        self.max_workers = max_workers

    def _build_series_cache(self, dates: Sequence, highs: Sequence[float], lows: Sequence[float],
                            closes: Sequence[float],
                            ranges: ParameterRanges) -> Dict[Tuple[int, int, int], PriceSeries]:
        cache = {}
        for r, s, u in itertools.product(ranges.r, ranges.s, ranges.u):
            daily = self.feed.compute_oscillator(highs, lows, r, s, u)
            weekly = self.feed.compute_weekly_oscillator(dates, highs, lows, r, s, u)
            cache[(r, s, u)] = PriceSeries.from_sequences(dates, closes, daily, weekly)
        logger.info(f"Computed oscillator series for {len(cache)} smoothing combination(s)")
        return cache

    def _evaluate(self, params: BacktestParams, series: PriceSeries) -> EvaluationResult:
        result = BacktestEngine(params).run(series)
        metrics = compute_backtest_metrics(result.completed_trades)
        return EvaluationResult(params=params, metrics=metrics, score=score_metrics(metrics))

    def _is_better(self, candidate: EvaluationResult, best: Optional[EvaluationResult]) -> bool:
        if candidate.metrics.total_trades < self.min_trades or math.isnan(candidate.score):
            return False
        return best is None or candidate.score > best.score

    def optimize(self, dates: Sequence, highs: Sequence[float], lows: Sequence[float],
                 closes: Sequence[float], ranges: Optional[ParameterRanges] = None) -> OptimizationResult:
        """
        Backtest every parameter combination and pick the best.

        Parameters
        ----------
        dates, highs, lows, closes : sequence
            Daily OHLC inputs of equal length.
        ranges : ParameterRanges, optional
            Grid to search. Defaults to ``ParameterRanges()``.

        Returns
        -------
        OptimizationResult
            ``best`` is None when no combination reaches ``min_trades``.
        """
        ranges = ranges if ranges is not None else ParameterRanges()
        if not (len(dates) == len(highs) == len(lows) == len(closes)):
            raise BacktestInputError("dates, highs, lows and closes must have the same length")

        logger.info(f"Optimizing over {ranges.size()} parameter combination(s)")
        cache = self._build_series_cache(dates, highs, lows, closes, ranges)
        combos = ranges.combinations()

        def evaluate(params: BacktestParams) -> EvaluationResult:
            return self._evaluate(params, cache[(params.r, params.s, params.u)])

        if self.max_workers and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(evaluate, combos))
        else:
            results = [evaluate(params) for params in combos]

        best = None
        for candidate in results:
            if self._is_better(candidate, best):
                best = candidate

        if best is not None:
            logger.info(
                f"Best parameters: {best.params.to_dict()} "
                f"(score {best.score:.4f}, {best.metrics.total_trades} trades)"
            )
        else:
            logger.warning(f"No combination produced at least {self.min_trades} completed trades")
        return OptimizationResult(best=best, results=results)
