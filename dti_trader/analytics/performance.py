# -*- coding: utf-8 -*-
"""
Risk and performance metrics over ledger trades.

All functions are pure: they take lists of ``LedgerTrade`` and return plain
values, dicts or small dataclasses. Closed-trade metrics treat a trade with
zero P/L as a loss. Empty inputs yield zero defaults, never NaN.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from dti_trader.live.trade import LedgerTrade, currency_symbol_for


TRADING_DAYS_PER_YEAR = 252
CALENDAR_DAYS_PER_YEAR = 365
DEFAULT_RISK_FREE_RATE = 0.02

SHORT_TERM_MAX_DAYS = 7
MEDIUM_TERM_MAX_DAYS = 21


def _currency(trade: LedgerTrade) -> str:
    return trade.currency_symbol or currency_symbol_for(trade.symbol)


def _finite_or_zero(value: float) -> float:
    return float(value) if math.isfinite(value) else 0.0


def _profit_factor(gross_profit: float, gross_loss: float) -> float:
    if gross_loss > 0:
        return gross_profit / gross_loss
    return math.inf if gross_profit > 0 else 0.0


def _by_exit_date(closed: Sequence[LedgerTrade]) -> List[LedgerTrade]:
    return sorted(closed, key=lambda t: t.exit_date or datetime.min)


# ============================================================================
# Summary Statistics
# ============================================================================

@dataclass
class TradeStatistics:
    """Headline statistics for a set of active and closed trades."""

    total_active: int = 0
    total_closed: int = 0
    total_invested: float = 0.0
    open_pl_percent: float = 0.0
    open_pl_value: float = 0.0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_profit: float = 0.0
    total_closed_profit: float = 0.0  # sum of closed P/L percentages
    profit_factor: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_active': self.total_active,
            'total_closed': self.total_closed,
            'total_invested': self.total_invested,
            'open_pl_percent': self.open_pl_percent,
            'open_pl_value': self.open_pl_value,
            'winning_trades': self.winning_trades,
            'losing_trades': self.losing_trades,
            'win_rate': self.win_rate,
            'avg_profit': self.avg_profit,
            'total_closed_profit': self.total_closed_profit,
            'profit_factor': self.profit_factor
        }


def trade_statistics(active: Sequence[LedgerTrade], closed: Sequence[LedgerTrade]) -> TradeStatistics:
    """
    Compute headline statistics.

    Parameters
    ----------
    active : sequence of LedgerTrade
        Open trades, used for invested capital and open P/L.
    closed : sequence of LedgerTrade
        Closed trades, used for win rate, average and profit factor.

    Returns
    -------
    TradeStatistics
    """
    stats = TradeStatistics(total_active=len(active), total_closed=len(closed))
    stats.total_invested = sum(t.investment_amount for t in active)

    if active:
        current_value = sum(t.current_value if t.current_value is not None
                            else t.shares * (t.current_price or t.entry_price) for t in active)
        initial_value = sum(t.entry_price * t.shares for t in active)
        stats.open_pl_value = current_value - initial_value
        if initial_value:
            stats.open_pl_percent = stats.open_pl_value / initial_value * 100

    gross_profit = 0.0
    gross_loss = 0.0
    for trade in closed:
        pl = trade.pl_percent or 0.0
        if pl > 0:
            stats.winning_trades += 1
            gross_profit += pl
        else:
            stats.losing_trades += 1
            gross_loss += abs(pl)
        stats.total_closed_profit += pl

    if closed:
        stats.win_rate = stats.winning_trades / len(closed) * 100
        stats.avg_profit = stats.total_closed_profit / len(closed)
    stats.profit_factor = _profit_factor(gross_profit, gross_loss)
    return stats


def trade_statistics_by_currency(active: Sequence[LedgerTrade],
                                 closed: Sequence[LedgerTrade]) -> Dict[str, Any]:
    """Overall statistics plus one ``TradeStatistics`` per currency tag."""
    currencies = []
    for trade in list(active) + list(closed):
        currency = _currency(trade)
        if currency not in currencies:
            currencies.append(currency)

    return {
        'overall': trade_statistics(active, closed),
        'currencies': {
            currency: trade_statistics(
                [t for t in active if _currency(t) == currency],
                [t for t in closed if _currency(t) == currency]
            )
            for currency in currencies
        }
    }


# ============================================================================
# Risk Metrics
# ============================================================================

def _implied_daily_return(trade: LedgerTrade) -> float:
    """Daily compounded rate (in %) that yields the trade's P/L over its holding days."""
    days = max(1, trade.closed_holding_days())
    growth = 1 + (trade.pl_percent or 0.0) / 100
    if growth <= 0:
        return -100.0
    return (growth ** (1 / days) - 1) * 100


def sharpe_ratio(closed: Sequence[LedgerTrade], risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> float:
    """
    Annualized Sharpe ratio from per-trade implied daily returns.

    Parameters
    ----------
    closed : sequence of LedgerTrade
        Closed trades.
    risk_free_rate : float, default 0.02
        Annual risk-free rate as a fraction.

    Returns
    -------
    float
        Sharpe ratio, 0.0 for empty input or zero dispersion.
    """
    if not closed:
        return 0.0

    daily_returns = np.array([_implied_daily_return(t) for t in closed], dtype=float)
    mean_return = np.mean(daily_returns)
    std_return = np.std(daily_returns)  # population
    if std_return == 0:
        return 0.0

    daily_risk_free = ((1 + risk_free_rate) ** (1 / CALENDAR_DAYS_PER_YEAR) - 1) * 100
    sharpe = (mean_return - daily_risk_free) / std_return * np.sqrt(TRADING_DAYS_PER_YEAR)
    return _finite_or_zero(sharpe)


@dataclass
class DrawdownInfo:
    """Largest peak-to-trough decline of cumulative realized P/L."""

    percentage: float = 0.0
    duration_days: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'percentage': self.percentage,
            'duration_days': self.duration_days,
            'start_date': self.start_date,
            'end_date': self.end_date
        }


def max_drawdown(closed: Sequence[LedgerTrade]) -> DrawdownInfo:
    """
    Maximum drawdown of cumulative P/L value, trades ordered by exit date.

    The peak starts at zero, so losses before the first profit do not count
    as drawdown. ``start_date`` is the exit date of the trade that set the
    peak and ``end_date`` the exit date of the trough.
    """
    info = DrawdownInfo()
    if not closed:
        return info

    peak = 0.0
    equity = 0.0
    peak_date = None
    for trade in _by_exit_date(closed):
        equity += trade.pl_value or 0.0
        if equity > peak:
            peak = equity
            peak_date = trade.exit_date
            continue
        drawdown = (peak - equity) / peak * 100 if peak > 0 else 0.0
        if drawdown > info.percentage:
            info.percentage = drawdown
            info.start_date = peak_date
            info.end_date = trade.exit_date

    if info.start_date is not None and info.end_date is not None:
        info.duration_days = math.floor((info.end_date - info.start_date).total_seconds() / 86400)
    return info


def expectancy(closed: Sequence[LedgerTrade]) -> float:
    """Win rate x average win minus loss rate x average loss, in percent."""
    if not closed:
        return 0.0

    wins = [t.pl_percent for t in closed if (t.pl_percent or 0) > 0]
    losses = [abs(t.pl_percent or 0.0) for t in closed if (t.pl_percent or 0) <= 0]
    win_rate = len(wins) / len(closed)
    average_win = sum(wins) / (len(wins) or 1)
    average_loss = sum(losses) / (len(losses) or 1)
    return win_rate * average_win - (1 - win_rate) * average_loss


@dataclass
class StreakInfo:
    """Consecutive win/loss runs, trades ordered by exit date."""

    current_type: str = 'none'  # 'win', 'loss' or 'none'
    current_count: int = 0
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    average_win_streak: float = 0.0
    average_loss_streak: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_streak': {'type': self.current_type, 'count': self.current_count},
            'longest_win_streak': self.longest_win_streak,
            'longest_loss_streak': self.longest_loss_streak,
            'average_win_streak': self.average_win_streak,
            'average_loss_streak': self.average_loss_streak
        }


def streak_info(closed: Sequence[LedgerTrade]) -> StreakInfo:
    """Win/loss streak statistics; a trade with positive P/L is a win."""
    info = StreakInfo()
    if not closed:
        return info

    streaks = {'win': [], 'loss': []}
    current_type = None
    count = 0
    for trade in _by_exit_date(closed):
        outcome = 'win' if (trade.pl_percent or 0) > 0 else 'loss'
        if outcome == current_type:
            count += 1
            continue
        if current_type is not None:
            streaks[current_type].append(count)
        current_type = outcome
        count = 1
    streaks[current_type].append(count)

    info.current_type = current_type
    info.current_count = count
    info.longest_win_streak = max(streaks['win'], default=0)
    info.longest_loss_streak = max(streaks['loss'], default=0)
    if streaks['win']:
        info.average_win_streak = sum(streaks['win']) / len(streaks['win'])
    if streaks['loss']:
        info.average_loss_streak = sum(streaks['loss']) / len(streaks['loss'])
    return info


def _bucket_stats(trades: List[LedgerTrade]) -> Dict[str, float]:
    if not trades:
        return {'count': 0, 'avg_pl': 0.0, 'win_rate': 0.0}
    pls = [t.pl_percent or 0.0 for t in trades]
    return {
        'count': len(trades),
        'avg_pl': sum(pls) / len(pls),
        'win_rate': sum(1 for pl in pls if pl > 0) / len(pls) * 100
    }


def holding_period_stats(closed: Sequence[LedgerTrade]) -> Dict[str, Dict[str, float]]:
    """Count, average P/L and win rate for short (<=7d), medium (8-21d) and long (22d+) holds."""
    short_term, medium_term, long_term = [], [], []
    for trade in closed:
        days = trade.closed_holding_days()
        if days <= SHORT_TERM_MAX_DAYS:
            short_term.append(trade)
        elif days <= MEDIUM_TERM_MAX_DAYS:
            medium_term.append(trade)
        else:
            long_term.append(trade)

    return {
        'short_term': _bucket_stats(short_term),
        'medium_term': _bucket_stats(medium_term),
        'long_term': _bucket_stats(long_term)
    }


# ============================================================================
# Advanced Metrics
# ============================================================================

def annualized_return(closed: Sequence[LedgerTrade]) -> float:
    """
    Sum of closed P/L percentages compounded to a yearly rate.

    The period runs from the earliest entry to the latest exit, at least one
    day. A total loss of 100% or more annualizes to -100%.
    """
    if not closed:
        return 0.0
    first_entry = min(t.entry_date for t in closed)
    last_exit = max(t.exit_date for t in closed)
    period_days = max(1, math.floor((last_exit - first_entry).total_seconds() / 86400))
    total_return = sum(t.pl_percent or 0.0 for t in closed)
    growth = 1 + total_return / 100
    if growth <= 0:
        return -100.0
    return _finite_or_zero((growth ** (CALENDAR_DAYS_PER_YEAR / period_days) - 1) * 100)


def risk_reward_ratio(closed: Sequence[LedgerTrade]) -> float:
    """Average closed P/L divided by the average losing P/L magnitude (1 if no losses)."""
    if not closed:
        return 0.0
    avg_profit = sum(t.pl_percent or 0.0 for t in closed) / len(closed)
    losses = [t.pl_percent or 0.0 for t in closed if (t.pl_percent or 0) <= 0]
    divisor = abs(sum(losses) / len(losses)) if losses else 1.0
    if divisor == 0:
        return 0.0
    return avg_profit / divisor


@dataclass
class AdvancedMetrics:
    """Complete metric set shown on the performance dashboard."""

    statistics: TradeStatistics = field(default_factory=TradeStatistics)
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_duration: int = 0
    expectancy: float = 0.0
    streaks: StreakInfo = field(default_factory=StreakInfo)
    holding_periods: Dict[str, Dict[str, float]] = field(default_factory=dict)
    avg_trade_duration: float = 0.0
    annualized_return: float = 0.0
    risk_reward_ratio: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = self.statistics.to_dict()
        data.update({
            'sharpe_ratio': self.sharpe_ratio,
            'max_drawdown': self.max_drawdown,
            'max_drawdown_duration': self.max_drawdown_duration,
            'expectancy': self.expectancy,
            'streaks': self.streaks.to_dict(),
            'holding_periods': self.holding_periods,
            'avg_trade_duration': self.avg_trade_duration,
            'annualized_return': self.annualized_return,
            'risk_reward_ratio': self.risk_reward_ratio
        })
        return data


def advanced_metrics(active: Sequence[LedgerTrade], closed: Sequence[LedgerTrade],
                     risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> AdvancedMetrics:
    """Combine every closed-trade metric into one ``AdvancedMetrics``."""
    drawdown = max_drawdown(closed)
    avg_duration = (sum(t.closed_holding_days() for t in closed) / len(closed)) if closed else 0.0
    return AdvancedMetrics(
        statistics=trade_statistics(active, closed),
        sharpe_ratio=sharpe_ratio(closed, risk_free_rate),
        max_drawdown=drawdown.percentage,
        max_drawdown_duration=drawdown.duration_days,
        expectancy=expectancy(closed),
        streaks=streak_info(closed),
        holding_periods=holding_period_stats(closed),
        avg_trade_duration=avg_duration,
        annualized_return=annualized_return(closed),
        risk_reward_ratio=risk_reward_ratio(closed)
    )
