# -*- coding: utf-8 -*-
"""
Backtesting module.

Provides the DTI backtest engine, the exit rules shared with the live
ledger, backtest performance metrics, the grid-search optimizer and the
multi-symbol signal scanner.
"""

from dti_trader.backtesting.config import BacktestParams, WARMUP_MONTHS
from dti_trader.backtesting.series import PriceSeries, BacktestInputError
from dti_trader.backtesting.exit_rules import (
    evaluate_exit,
    backtest_exit_reason,
    live_exit_reason,
    BACKTEST_EXIT_PRIORITY,
    LIVE_EXIT_PRIORITY
)
from dti_trader.backtesting.engine import (
    BacktestEngine,
    BacktestResult,
    SimulatedTrade,
    WarmupInfo,
    simulate
)
from dti_trader.backtesting.metrics import BacktestMetrics, compute_backtest_metrics
from dti_trader.backtesting.optimizer import (
    ParameterOptimizer,
    ParameterRanges,
    EvaluationResult,
    OptimizationResult,
    score_metrics
)
from dti_trader.backtesting.scanner import (
    SignalScanner,
    ScanSignal,
    ScanResult,
    SIGNAL_AGE_BUCKETS
)

__all__ = [
    'BacktestParams',
    'WARMUP_MONTHS',
    'PriceSeries',
    'BacktestInputError',
    'evaluate_exit',
    'backtest_exit_reason',
    'live_exit_reason',
    'BACKTEST_EXIT_PRIORITY',
    'LIVE_EXIT_PRIORITY',
    'BacktestEngine',
    'BacktestResult',
    'SimulatedTrade',
    'WarmupInfo',
    'simulate',
    'BacktestMetrics',
    'compute_backtest_metrics',
    'ParameterOptimizer',
    'ParameterRanges',
    'EvaluationResult',
    'OptimizationResult',
    'score_metrics',
    'SignalScanner',
    'ScanSignal',
    'ScanResult',
    'SIGNAL_AGE_BUCKETS'
]
