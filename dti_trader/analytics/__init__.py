# -*- coding: utf-8 -*-
"""
Trade analytics.

Pure metric and chart-data functions over ledger trades, plus a cached
analyzer bound to a ``TradeLedger``.
"""

from dti_trader.analytics.performance import (
    TradeStatistics,
    DrawdownInfo,
    StreakInfo,
    AdvancedMetrics,
    trade_statistics,
    trade_statistics_by_currency,
    sharpe_ratio,
    max_drawdown,
    expectancy,
    streak_info,
    holding_period_stats,
    annualized_return,
    risk_reward_ratio,
    advanced_metrics
)
from dti_trader.analytics.charts import (
    equity_curve,
    drawdown_curve,
    pl_distribution,
    win_loss_pie,
    trade_size_vs_return,
    monthly_performance,
    exit_reason_breakdown,
    performance_by_market,
    calendar_heatmap
)
from dti_trader.analytics.analyzer import PerformanceAnalyzer

__all__ = [
    'TradeStatistics',
    'DrawdownInfo',
    'StreakInfo',
    'AdvancedMetrics',
    'trade_statistics',
    'trade_statistics_by_currency',
    'sharpe_ratio',
    'max_drawdown',
    'expectancy',
    'streak_info',
    'holding_period_stats',
    'annualized_return',
    'risk_reward_ratio',
    'advanced_metrics',
    'equity_curve',
    'drawdown_curve',
    'pl_distribution',
    'win_loss_pie',
    'trade_size_vs_return',
    'monthly_performance',
    'exit_reason_breakdown',
    'performance_by_market',
    'calendar_heatmap',
    'PerformanceAnalyzer'
]
