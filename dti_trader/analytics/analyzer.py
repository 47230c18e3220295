# -*- coding: utf-8 -*-
"""
Ledger-bound analytics with cached curves.

``PerformanceAnalyzer`` reads the ledger on demand. The equity curve, the
drawdown curve and the advanced metrics are cached and recomputed only when
the ledger's mutation counter changes.
"""

import logging
from typing import Any, Dict, List, Optional

from dti_trader.analytics import charts, performance
from dti_trader.live.ledger import TradeLedger


logger = logging.getLogger(__name__)


class PerformanceAnalyzer:
    """Analytics facade over a ``TradeLedger``."""

    def __init__(self, ledger: TradeLedger, risk_free_rate: float = performance.DEFAULT_RISK_FREE_RATE,
                 include_active: bool = True):
        """
        Initialize analyzer.

        Parameters
        ----------
        ledger : TradeLedger
            Ledger to analyze.
        risk_free_rate : float, optional
            Annual risk-free rate for the Sharpe ratio.
        include_active : bool, default True
            Append active trades' unrealized P/L to the equity curve.
        """
        self.ledger = ledger
        self.risk_free_rate = risk_free_rate
        self.include_active = include_active
        self._cache: Dict[str, Any] = {}
        self._cache_version: Optional[int] = None

    def _cached(self, key: str, compute):
        if self._cache_version != self.ledger.version:
            self._cache = {}
            self._cache_version = self.ledger.version
        if key not in self._cache:
            logger.debug(f"Computing {key} for ledger version {self.ledger.version}")
            self._cache[key] = compute()
        return self._cache[key]

    def invalidate(self):
        self._cache = {}
        self._cache_version = None

    # Cached

    def equity_curve(self) -> List[Dict[str, Any]]:
        now = self.ledger.clock() if self.include_active else None
        return self._cached('equity_curve', lambda: charts.equity_curve(
            self.ledger.closed_trades, self.ledger.active_trades, now))

    def drawdown_curve(self) -> List[Dict[str, Any]]:
        return self._cached('drawdown_curve', lambda: charts.drawdown_curve(self.equity_curve()))

    def advanced_metrics(self) -> performance.AdvancedMetrics:
        return self._cached('advanced_metrics', lambda: performance.advanced_metrics(
            self.ledger.active_trades, self.ledger.closed_trades, self.risk_free_rate))

    # Uncached

    def statistics(self) -> performance.TradeStatistics:
        return performance.trade_statistics(self.ledger.active_trades, self.ledger.closed_trades)

    def statistics_by_currency(self) -> Dict[str, Any]:
        return performance.trade_statistics_by_currency(self.ledger.active_trades, self.ledger.closed_trades)

    def sharpe_ratio(self) -> float:
        return performance.sharpe_ratio(self.ledger.closed_trades, self.risk_free_rate)

    def max_drawdown(self) -> performance.DrawdownInfo:
        return performance.max_drawdown(self.ledger.closed_trades)

    def expectancy(self) -> float:
        return performance.expectancy(self.ledger.closed_trades)

    def streak_info(self) -> performance.StreakInfo:
        return performance.streak_info(self.ledger.closed_trades)

    def holding_period_stats(self) -> Dict[str, Dict[str, float]]:
        return performance.holding_period_stats(self.ledger.closed_trades)

    def pl_distribution(self) -> Dict[str, List]:
        return charts.pl_distribution(self.ledger.closed_trades)

    def monthly_performance(self) -> List[Dict[str, Any]]:
        return charts.monthly_performance(self.ledger.closed_trades)

    def exit_reason_breakdown(self) -> List[Dict[str, Any]]:
        return charts.exit_reason_breakdown(self.ledger.closed_trades)

    def performance_by_market(self) -> List[Dict[str, Any]]:
        return charts.performance_by_market(self.ledger.closed_trades)

    def trade_size_vs_return(self) -> List[Dict[str, Any]]:
        return charts.trade_size_vs_return(self.ledger.closed_trades)

    def calendar_heatmap(self, year: Optional[int] = None) -> List[Dict[str, Any]]:
        year = year if year is not None else self.ledger.clock().year
        return charts.calendar_heatmap(self.ledger.closed_trades, year)

    def win_loss_pie(self) -> Dict[str, List]:
        return charts.win_loss_pie(self.ledger.closed_trades)
