"""Tests for chart-ready aggregates."""

from datetime import datetime, timedelta

import pytest

from dti_trader.analytics import (
    calendar_heatmap,
    drawdown_curve,
    equity_curve,
    exit_reason_breakdown,
    monthly_performance,
    performance_by_market,
    pl_distribution,
    trade_size_vs_return,
    win_loss_pie
)
from dti_trader.live.trade import LedgerTrade


NOW = datetime(2024, 3, 20)


class TestEquityCurve:
    def test_closed_trades(self, make_closed_trade):
        later = make_closed_trade(-5, datetime(2024, 2, 10), days=5)
        earlier = make_closed_trade(10, datetime(2024, 1, 10), days=5)
        curve = equity_curve([later, earlier])

        assert [p['date'] for p in curve] == [datetime(2024, 1, 5), datetime(2024, 1, 10), datetime(2024, 2, 10)]
        assert [p['equity'] for p in curve] == pytest.approx([0.0, 100.0, 50.0])
        assert [p['equity_percent'] for p in curve] == pytest.approx([0.0, 5.0, 2.5])
        assert not any(p['is_active'] for p in curve)

    def test_active_point_appended(self, make_closed_trade):
        closed = [make_closed_trade(10, datetime(2024, 1, 10))]
        active = LedgerTrade(id='a', symbol='AAPL', stock_name='AAPL', entry_date=datetime(2024, 3, 1),
                             entry_price=100.0, investment_amount=500.0, shares=5.0, current_price=90.0)
        active.refresh_valuation(NOW)

        curve = equity_curve(closed, [active], NOW)
        assert curve[-1]['is_active'] is True
        assert curve[-1]['date'] == NOW
        assert curve[-1]['equity'] == pytest.approx(50.0)

    def test_empty(self):
        assert equity_curve([]) == []

    def test_drawdown_curve(self, make_closed_trade):
        trades = [make_closed_trade(10, datetime(2024, 1, 10)), make_closed_trade(-5, datetime(2024, 2, 10))]
        drawdowns = [p['drawdown'] for p in drawdown_curve(equity_curve(trades))]
        assert drawdowns == pytest.approx([0.0, 0.0, 50.0])


class TestDistributions:
    def test_histogram_bins(self, make_closed_trade):
        trades = [make_closed_trade(pl, datetime(2024, 1, 10)) for pl in (-60, -2, 3, 49, 70)]
        result = pl_distribution(trades)

        assert len(result['bins']) == 20
        assert result['bins'][0] == -50
        assert result['bins'][-1] == 45
        counts = result['counts']
        assert counts[0] == 1
        assert counts[9] == 1
        assert counts[10] == 1
        assert counts[19] == 2
        assert sum(counts) == 5

    def test_histogram_empty(self):
        assert pl_distribution([]) == {'bins': [], 'counts': []}

    def test_win_loss_pie(self, make_closed_trade):
        trades = [make_closed_trade(pl, datetime(2024, 1, 10)) for pl in (5, -1, 0)]
        assert win_loss_pie(trades)['data'] == [1, 2]

    def test_trade_size_vs_return(self, make_closed_trade):
        points = trade_size_vs_return([make_closed_trade(5, datetime(2024, 1, 10), investment=2500.0)])
        assert points[0]['size'] == 2500.0
        assert points[0]['return'] == 5
        assert points[0]['holding_days'] == 5


class TestGroupings:
    def test_monthly_fills_gaps(self, make_closed_trade):
        trades = [
            make_closed_trade(4, datetime(2024, 1, 10)),
            make_closed_trade(-2, datetime(2024, 1, 20)),
            make_closed_trade(6, datetime(2024, 3, 5)),
        ]
        months = monthly_performance(trades)

        assert [(m['year'], m['month'], m['month_name']) for m in months] == \
            [(2024, 1, 'Jan'), (2024, 2, 'Feb'), (2024, 3, 'Mar')]
        assert months[0]['trades'] == 2
        assert months[0]['total_pl'] == pytest.approx(2.0)
        assert months[0]['win_rate'] == pytest.approx(50.0)
        assert months[1]['trades'] == 0
        assert months[1]['avg_pl'] == 0.0

    def test_monthly_empty(self):
        assert monthly_performance([]) == []

    def test_exit_reason_breakdown(self, make_closed_trade):
        trades = [
            make_closed_trade(10, datetime(2024, 1, 10), reason='Target Reached'),
            make_closed_trade(12, datetime(2024, 1, 11), reason='Target Reached'),
            make_closed_trade(-5, datetime(2024, 1, 12), reason='Stop Loss Hit'),
            make_closed_trade(1, datetime(2024, 1, 13), reason=None),
        ]
        groups = {g['reason']: g for g in exit_reason_breakdown(trades)}

        assert groups['Target Reached']['count'] == 2
        assert groups['Target Reached']['avg_pl'] == pytest.approx(11.0)
        assert groups['Target Reached']['percentage'] == pytest.approx(50.0)
        assert groups['Stop Loss Hit']['win_rate'] == 0.0
        assert groups['Unknown']['count'] == 1

    def test_performance_by_market(self, make_closed_trade):
        trades = [
            make_closed_trade(10, datetime(2024, 1, 10)),
            make_closed_trade(-4, datetime(2024, 1, 11), symbol='TCS.NS', currency='₹'),
            make_closed_trade(2, datetime(2024, 1, 12), symbol='VOD.L', currency=''),
        ]
        markets = {g['name']: g for g in performance_by_market(trades)}

        assert set(markets) == {'US Market', 'India Market', 'UK Market'}
        assert markets['UK Market']['currency'] == '£'
        assert markets['India Market']['losses'] == 1

    def test_calendar_heatmap(self, make_closed_trade):
        trades = [
            make_closed_trade(4, datetime(2024, 2, 29, 15, 0)),
            make_closed_trade(-2, datetime(2024, 2, 29, 16, 0)),
            make_closed_trade(7, datetime(2023, 12, 31)),
        ]
        days = calendar_heatmap(trades, 2024)

        assert len(days) == 366
        assert days[0]['date'] == '2024-01-01'
        leap_day = next(d for d in days if d['date'] == '2024-02-29')
        assert leap_day['trades'] == 2
        assert leap_day['value'] == pytest.approx(1.0)
        assert leap_day['total_value'] == pytest.approx(2.0)
        assert sum(d['trades'] for d in days) == 2
