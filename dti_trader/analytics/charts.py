# -*- coding: utf-8 -*-
"""
Chart-ready aggregates over ledger trades.

Each function returns plain lists/dicts that a presentation layer can plot
directly: equity and drawdown curves, P/L histogram, monthly performance,
exit-reason and market breakdowns, trade size scatter and a daily calendar.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from dti_trader.live.trade import LedgerTrade, currency_symbol_for


PL_BIN_SIZE = 5
PL_BIN_MIN = -50
PL_BIN_MAX = 50

MARKET_NAMES = {
    '$': 'US Market',
    '£': 'UK Market',
    '₹': 'India Market'
}


def _pl(trade: LedgerTrade) -> float:
    return trade.pl_percent or 0.0


def _win_rate(pls: List[float]) -> float:
    return sum(1 for pl in pls if pl > 0) / len(pls) * 100 if pls else 0.0


# ============================================================================
# Curves
# ============================================================================

def equity_curve(closed: Sequence[LedgerTrade], active: Sequence[LedgerTrade] = (),
                 now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Cumulative P/L value after each closed trade.

    The curve starts at zero on the entry date of the earliest-exiting
    trade. ``equity_percent`` is relative to the total investment of all
    closed trades. When ``now`` is given, active trades are appended in
    entry order with their unrealized P/L and ``is_active=True``.

    Returns
    -------
    list of dict
        Points with ``date``, ``equity``, ``equity_percent`` and
        ``is_active``. Empty when there are no closed trades.
    """
    if not closed:
        return []

    ordered = sorted(closed, key=lambda t: t.exit_date or datetime.min)
    invested = sum(t.investment_amount for t in closed)

    def percent(value: float) -> float:
        return value / invested * 100 if invested else 0.0

    curve = [{'date': ordered[0].entry_date, 'equity': 0.0, 'equity_percent': 0.0, 'is_active': False}]
    running = 0.0
    for trade in ordered:
        running += trade.pl_value or 0.0
        curve.append({
            'date': trade.exit_date,
            'equity': running,
            'equity_percent': percent(running),
            'is_active': False
        })

    if now is not None:
        for trade in sorted(active, key=lambda t: t.entry_date or datetime.min):
            running += trade.current_pl_value or 0.0
            curve.append({
                'date': now,
                'equity': running,
                'equity_percent': percent(running),
                'is_active': True
            })
    return curve


def drawdown_curve(curve: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Percentage below the running equity peak at each equity point."""
    peak = 0.0
    series = []
    for point in curve:
        equity = point['equity']
        if equity > peak:
            peak = equity
            drawdown = 0.0
        else:
            drawdown = (peak - equity) / peak * 100 if peak != 0 else 0.0
        series.append({'date': point['date'], 'drawdown': drawdown})
    return series


# ============================================================================
# Distributions
# ============================================================================

def pl_distribution(closed: Sequence[LedgerTrade]) -> Dict[str, List]:
    """
    Histogram of closed P/L percentages in 5% bins from -50% to +50%.

    Values outside the range are counted in the first or last bin.
    """
    if not closed:
        return {'bins': [], 'counts': []}

    bins = list(range(PL_BIN_MIN, PL_BIN_MAX, PL_BIN_SIZE))
    counts = [0] * len(bins)
    for trade in closed:
        index = int((_pl(trade) - PL_BIN_MIN) // PL_BIN_SIZE)
        counts[min(len(bins) - 1, max(0, index))] += 1
    return {'bins': bins, 'counts': counts}


def win_loss_pie(closed: Sequence[LedgerTrade]) -> Dict[str, List]:
    wins = sum(1 for t in closed if _pl(t) > 0)
    return {
        'labels': ['Winning Trades', 'Losing Trades'],
        'data': [wins, len(closed) - wins]
    }


def trade_size_vs_return(closed: Sequence[LedgerTrade]) -> List[Dict[str, Any]]:
    return [
        {
            'size': t.investment_amount,
            'return': _pl(t),
            'symbol': t.symbol,
            'stock_name': t.stock_name,
            'exit_date': t.exit_date,
            'holding_days': t.closed_holding_days(),
            'currency_symbol': t.currency_symbol or currency_symbol_for(t.symbol)
        }
        for t in closed
    ]


# ============================================================================
# Groupings
# ============================================================================

def monthly_performance(closed: Sequence[LedgerTrade]) -> List[Dict[str, Any]]:
    """
    Per calendar month from the first to the last exit month.

    Months without exits are included with zero values. ``month`` is 1-12.
    """
    if not closed:
        return []

    exit_months = {}
    for trade in closed:
        key = pd.Period(trade.exit_date, freq='M')
        exit_months.setdefault(key, []).append(_pl(trade))

    months = pd.period_range(min(exit_months), max(exit_months), freq='M')
    result = []
    for period in months:
        pls = exit_months.get(period, [])
        total = sum(pls)
        result.append({
            'year': period.year,
            'month': period.month,
            'month_name': period.strftime('%b'),
            'trades': len(pls),
            'total_pl': total,
            'avg_pl': total / len(pls) if pls else 0.0,
            'win_rate': _win_rate(pls)
        })
    return result


def _grouped_breakdown(closed: Sequence[LedgerTrade], key_func, name_field: str) -> List[Dict[str, Any]]:
    groups: Dict[str, Dict[str, Any]] = {}
    for trade in closed:
        name, extra = key_func(trade)
        group = groups.setdefault(name, dict(extra, **{name_field: name, 'count': 0,
                                                        'total_pl': 0.0, 'wins': 0, 'losses': 0}))
        pl = _pl(trade)
        group['count'] += 1
        group['total_pl'] += pl
        if pl > 0:
            group['wins'] += 1
        else:
            group['losses'] += 1

    for group in groups.values():
        group['avg_pl'] = group['total_pl'] / group['count']
        group['win_rate'] = group['wins'] / group['count'] * 100
        group['percentage'] = group['count'] / len(closed) * 100
    return list(groups.values())


def exit_reason_breakdown(closed: Sequence[LedgerTrade]) -> List[Dict[str, Any]]:
    """Count, P/L and win rate per exit reason (missing reasons become 'Unknown')."""
    return _grouped_breakdown(closed, lambda t: (t.exit_reason or 'Unknown', {}), 'reason')


def performance_by_market(closed: Sequence[LedgerTrade]) -> List[Dict[str, Any]]:
    """Count, P/L and win rate per market, derived from the currency tag."""
    def market(trade: LedgerTrade):
        currency = trade.currency_symbol or currency_symbol_for(trade.symbol)
        return MARKET_NAMES.get(currency, 'Other'), {'currency': currency}

    return _grouped_breakdown(closed, market, 'name')


def calendar_heatmap(closed: Sequence[LedgerTrade], year: int) -> List[Dict[str, Any]]:
    """
    One entry per day of ``year``.

    ``value`` is the average P/L percentage of trades exiting that day,
    ``total_value`` their sum. Days without exits carry zeros.
    """
    days: Dict[str, List[float]] = {}
    for trade in closed:
        if trade.exit_date is not None and trade.exit_date.year == year:
            days.setdefault(trade.exit_date.strftime('%Y-%m-%d'), []).append(_pl(trade))

    result = []
    for day in pd.date_range(f"{year}-01-01", f"{year}-12-31", freq='D'):
        key = day.strftime('%Y-%m-%d')
        pls = days.get(key, [])
        total = sum(pls)
        result.append({
            'date': key,
            'trades': len(pls),
            'value': total / len(pls) if pls else 0.0,
            'total_value': total
        })
    return result
