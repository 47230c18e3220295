# -*- coding: utf-8 -*-
"""
Performance summary for backtest results.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from dti_trader.backtesting.engine import SimulatedTrade, calendar_days_between


@dataclass
class BacktestMetrics:
    """Aggregate statistics over completed simulated trades."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0  # percent
    avg_profit: float = 0.0  # percent per trade
    total_return: float = 0.0  # sum of trade percentages
    profit_factor: float = 0.0
    max_drawdown: float = 0.0  # percent, compounded equity
    avg_holding_period: float = 0.0  # days
    take_profit_count: int = 0
    stop_loss_count: int = 0
    time_exit_count: int = 0
    end_of_data_count: int = 0
    equity_curve: List[float] = field(default_factory=lambda: [100.0])

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            'total_trades': self.total_trades,
            'winning_trades': self.winning_trades,
            'losing_trades': self.losing_trades,
            'win_rate': self.win_rate,
            'avg_profit': self.avg_profit,
            'total_return': self.total_return,
            'profit_factor': self.profit_factor,
            'max_drawdown': self.max_drawdown,
            'avg_holding_period': self.avg_holding_period,
            'take_profit_count': self.take_profit_count,
            'stop_loss_count': self.stop_loss_count,
            'time_exit_count': self.time_exit_count,
            'end_of_data_count': self.end_of_data_count
        }


_EXIT_COUNTERS = {
    'Take Profit': 'take_profit_count',
    'Stop Loss': 'stop_loss_count',
    'Time Exit': 'time_exit_count',
    'End of Data': 'end_of_data_count'
}


def compute_backtest_metrics(trades: Iterable[SimulatedTrade]) -> BacktestMetrics:
    """
    Summarize completed trades.

    Open trades are ignored. Trades with zero P/L count as losses. Drawdown is
    measured on an equity curve that starts at 100 and compounds each
    trade's percentage return.

    Parameters
    ----------
    trades : iterable of SimulatedTrade
        Trades in entry order.

    Returns
    -------
    BacktestMetrics
        All-zero metrics for an empty input.
    """
    completed = [t for t in trades if not t.is_open]
    metrics = BacktestMetrics()
    if not completed:
        return metrics

    gross_profit = 0.0
    gross_loss = 0.0
    total_holding_days = 0
    peak = 0.0
    equity = metrics.equity_curve

    for trade in completed:
        pl = trade.pl_percent
        if pl > 0:
            metrics.winning_trades += 1
            gross_profit += pl
        else:
            metrics.losing_trades += 1
            gross_loss += abs(pl)
        metrics.total_return += pl

        next_equity = equity[-1] * (1 + pl / 100)
        equity.append(next_equity)
        peak = max(peak, next_equity)
        if peak > 0:
            metrics.max_drawdown = max(metrics.max_drawdown, (peak - next_equity) / peak * 100)

        total_holding_days += calendar_days_between(trade.entry_date, trade.exit_date)

        counter = _EXIT_COUNTERS.get(trade.exit_reason)
        if counter:
            setattr(metrics, counter, getattr(metrics, counter) + 1)

    total = len(completed)
    metrics.total_trades = total
    metrics.win_rate = metrics.winning_trades / total * 100
    metrics.avg_profit = metrics.total_return / total
    metrics.avg_holding_period = total_holding_days / total
    if gross_loss > 0:
        metrics.profit_factor = gross_profit / gross_loss
    elif gross_profit > 0:
        metrics.profit_factor = math.inf
    return metrics
