"""Tests for the trade ledger lifecycle, price refresh and import/export."""

import json
from datetime import datetime, timedelta

import pandas as pd
import pytest

from dti_trader.backtesting import BacktestParams, ScanSignal, SimulatedTrade
from dti_trader.live import ledger as ledger_module
from dti_trader.live.ledger import (
    HISTORY_CLEARED,
    PRICES_UPDATED,
    TRADE_CLOSED,
    TRADE_CREATED,
    TRADE_DELETED,
    TRADE_EDITED,
    TRADES_IMPORTED,
    RefreshReport,
    TradeLedger,
    TradeValidationError
)
from dti_trader.live.price_feed import PriceDataError, TransientPriceFeedError
from dti_trader.live.trade import STATUS_ACTIVE, STATUS_CLOSED


def _open(ledger, symbol='AAPL', entry=100.0, amount=1000.0, stop=95.0, target=110.0, **kwargs):
    trade_id = ledger.create(symbol, entry, amount, stop_loss_price=stop, target_price=target, **kwargs)
    assert trade_id is not None
    return trade_id


class TestCreate:
    def test_create_active_trade(self, ledger, store, clock, events):
        trade_id = _open(ledger)
        trade = ledger.get(trade_id)

        assert trade_id.startswith('trade_')
        assert trade.status == STATUS_ACTIVE
        assert trade.shares == pytest.approx(10.0)
        assert trade.entry_date == clock.now
        assert trade.currency_symbol == '$'
        assert trade.stop_loss_percent == pytest.approx(5.0)
        assert trade.take_profit_percent == pytest.approx(10.0)
        assert trade.current_value == pytest.approx(1000.0)
        assert store.save_calls == 1
        assert ledger.version == 1
        assert [(e.kind, e.trade_id) for e in events] == [(TRADE_CREATED, trade_id)]

    def test_levels_from_percentages(self, ledger):
        trade_id = ledger.create('TCS.NS', 200.0, 2000.0, stop_loss_percent=5, take_profit_percent=10)
        trade = ledger.get(trade_id)
        assert trade.stop_loss_price == pytest.approx(190.0)
        assert trade.target_price == pytest.approx(220.0)
        assert trade.currency_symbol == '₹'

    @pytest.mark.parametrize("symbol, entry, amount", [
        ('', 100.0, 1000.0),
        ('AAPL', 0, 1000.0),
        ('AAPL', 100.0, -5),
        ('AAPL', 'abc', 1000.0),
    ])
    def test_invalid_input(self, ledger, symbol, entry, amount):
        with pytest.raises(TradeValidationError):
            ledger.create(symbol, entry, amount)
        assert ledger.trades == []

    def test_persistence_failure_rolls_back(self, ledger, store, events):
        store.fail = True
        assert ledger.create('AAPL', 100.0, 1000.0) is None
        assert ledger.trades == []
        assert ledger.version == 0
        assert events == []

    def test_store_error_restores_and_propagates(self, ledger, store, monkeypatch, events):
        existing = _open(ledger)

        def broken_save(trades):
            raise OSError("disk full")

        monkeypatch.setattr(store, 'save', broken_save)
        with pytest.raises(OSError):
            ledger.create('MSFT', 300.0, 3000.0)

        assert [t.id for t in ledger.trades] == [existing]
        assert [t.to_dict() for t in ledger.trades] == store.saved
        assert [e.kind for e in events] == [TRADE_CREATED]

    def test_unparseable_dates_rejected(self, ledger):
        with pytest.raises(TradeValidationError):
            ledger.create('AAPL', 100.0, 1000.0, square_off_date='someday')
        with pytest.raises(TradeValidationError):
            ledger.create('AAPL', 100.0, 1000.0, entry_date='not-a-date')
        assert ledger.trades == []

    def test_loads_existing_trades(self, store, clock):
        first = TradeLedger(store, clock=clock)
        trade_id = _open(first)
        second = TradeLedger(store, clock=clock)
        assert second.get(trade_id) is not None


class TestCreateFromSignal:
    PARAMS = BacktestParams(take_profit_percent=8.0, stop_loss_percent=5.0, max_holding_days=30)

    @staticmethod
    def _signal(current_price=100.0):
        date = pd.Timestamp("2024-01-04")
        trade = SimulatedTrade(entry_date=date, entry_price=98.0, entry_oscillator=-45.0,
                               entry_weekly_oscillator=None, current_price=current_price,
                               current_pl_percent=2.04, holding_days=6, signal_date=date)
        return ScanSignal(symbol='AAPL', name='Apple Inc.', trade=trade, age_days=6)

    def test_levels_and_square_off_from_strategy(self, ledger, clock, events):
        trade_id = ledger.create_from_signal(self._signal(), 1000.0, self.PARAMS)
        trade = ledger.get(trade_id)

        assert trade.symbol == 'AAPL'
        assert trade.stock_name == 'Apple Inc.'
        assert trade.entry_price == 100.0
        assert trade.shares == pytest.approx(10.0)
        assert trade.stop_loss_price == pytest.approx(95.0)
        assert trade.target_price == pytest.approx(108.0)
        assert trade.stop_loss_percent == pytest.approx(5.0)
        assert trade.take_profit_percent == pytest.approx(8.0)
        assert trade.square_off_date == clock.now + timedelta(days=30)
        assert '2024-01-04' in trade.notes
        assert [e.kind for e in events] == [TRADE_CREATED]

    def test_fill_price_override(self, ledger):
        trade_id = ledger.create_from_signal(self._signal(), 1000.0, self.PARAMS, entry_price=200.0)
        trade = ledger.get(trade_id)

        assert trade.entry_price == 200.0
        assert trade.stop_loss_price == pytest.approx(190.0)
        assert trade.target_price == pytest.approx(216.0)

    def test_default_strategy(self, ledger, clock):
        defaults = BacktestParams()
        trade = ledger.get(ledger.create_from_signal(self._signal(), 1000.0))

        assert trade.square_off_date == clock.now + timedelta(days=defaults.max_holding_days)
        assert trade.take_profit_percent == pytest.approx(defaults.take_profit_percent)

    def test_bare_backtest_trade_needs_symbol(self, ledger):
        backtest_trade = self._signal().trade
        with pytest.raises(TradeValidationError):
            ledger.create_from_signal(backtest_trade, 1000.0, self.PARAMS)

        trade = ledger.get(ledger.create_from_signal(backtest_trade, 1000.0, self.PARAMS, symbol='MSFT'))
        assert trade.symbol == 'MSFT'
        assert trade.stock_name == 'MSFT'


class TestEdit:
    def test_edit_levels_recomputes_percentages(self, ledger, events):
        trade_id = _open(ledger)
        assert ledger.edit(trade_id, stop_loss_price=90.0, notes='wider stop')

        trade = ledger.get(trade_id)
        assert trade.stop_loss_percent == pytest.approx(10.0)
        assert trade.notes == 'wider stop'
        assert events[-1].kind == TRADE_EDITED

    def test_new_entry_keeps_absolute_levels(self, ledger):
        trade_id = _open(ledger)
        ledger.edit(trade_id, entry_price=80.0)

        trade = ledger.get(trade_id)
        assert trade.stop_loss_price == 95.0
        assert trade.target_price == 110.0
        assert trade.take_profit_percent == pytest.approx(37.5)

    def test_edit_can_trigger_exit(self, ledger, events):
        trade_id = _open(ledger)
        assert ledger.edit(trade_id, stop_loss_price=101.0)

        trade = ledger.get(trade_id)
        assert trade.status == STATUS_CLOSED
        assert trade.exit_reason == 'Stop Loss Hit'
        assert [e.kind for e in events][-2:] == [TRADE_EDITED, TRADE_CLOSED]

    def test_unknown_field_rejected(self, ledger):
        trade_id = _open(ledger)
        with pytest.raises(TradeValidationError):
            ledger.edit(trade_id, symbol='MSFT')

    def test_closed_trade_not_editable(self, ledger):
        trade_id = _open(ledger)
        ledger.close(trade_id, 105.0)
        assert ledger.edit(trade_id, notes='late') is False

    def test_persistence_failure_rolls_back(self, ledger, store):
        trade_id = _open(ledger)
        store.fail = True
        assert ledger.edit(trade_id, stop_loss_price=90.0) is False
        assert ledger.get(trade_id).stop_loss_price == 95.0

    def test_unparseable_square_off_rejected(self, ledger, clock):
        square_off = clock.now + timedelta(days=5)
        trade_id = _open(ledger, square_off_date=square_off)

        with pytest.raises(TradeValidationError):
            ledger.edit(trade_id, square_off_date='not a date', notes='changed')
        trade = ledger.get(trade_id)
        assert trade.square_off_date == square_off
        assert trade.notes == ''

    def test_empty_square_off_clears_it(self, ledger, clock):
        trade_id = _open(ledger, square_off_date=clock.now + timedelta(days=5))
        assert ledger.edit(trade_id, square_off_date='')
        assert ledger.get(trade_id).square_off_date is None

    def test_failed_evaluation_restores_trade(self, ledger, store, monkeypatch):
        trade_id = _open(ledger)

        def broken(*args, **kwargs):
            raise RuntimeError("evaluation failed")

        monkeypatch.setattr(ledger_module, 'live_exit_reason', broken)
        with pytest.raises(RuntimeError):
            ledger.edit(trade_id, stop_loss_price=90.0)

        assert ledger.get(trade_id).stop_loss_price == 95.0
        assert [t.to_dict() for t in ledger.trades] == store.saved


class TestCloseDeleteClear:
    def test_manual_close(self, ledger, clock, events):
        trade_id = _open(ledger)
        clock.advance(days=2)
        assert ledger.close(trade_id, 110.0, notes='took profit')

        trade = ledger.get(trade_id)
        assert trade.status == STATUS_CLOSED
        assert trade.exit_reason == 'Manual Exit'
        assert trade.exit_date == clock.now
        assert trade.pl_percent == pytest.approx(10.0)
        assert trade.pl_value == pytest.approx(100.0)
        assert trade.notes == 'took profit'
        assert events[-1].kind == TRADE_CLOSED
        assert events[-1].payload['automatic'] is False

    def test_close_unknown_trade(self, ledger):
        assert ledger.close('trade_missing', 100.0) is False

    def test_close_twice(self, ledger):
        trade_id = _open(ledger)
        assert ledger.close(trade_id, 100.0)
        assert ledger.close(trade_id, 120.0) is False

    def test_close_rollback(self, ledger, store):
        trade_id = _open(ledger)
        store.fail = True
        assert ledger.close(trade_id, 110.0) is False
        assert ledger.get(trade_id).status == STATUS_ACTIVE

    def test_delete(self, ledger, events):
        trade_id = _open(ledger)
        assert ledger.delete(trade_id)
        assert ledger.get(trade_id) is None
        assert events[-1].kind == TRADE_DELETED
        assert ledger.delete(trade_id) is False

    def test_clear_history_keeps_active(self, ledger, events):
        keep = _open(ledger)
        drop = _open(ledger, symbol='MSFT')
        ledger.close(drop, 100.0)

        assert ledger.clear_history()
        assert [t.id for t in ledger.trades] == [keep]
        assert events[-1].kind == HISTORY_CLEARED
        assert events[-1].payload['removed'] == 1


class TestQueries:
    def test_sorting_and_filters(self, ledger, clock):
        first = _open(ledger)
        clock.advance(days=1)
        second = _open(ledger, symbol='MSFT')
        clock.advance(days=1)
        winner = _open(ledger, symbol='TSLA')
        loser = _open(ledger, symbol='NVDA')
        ledger.close(winner, 120.0)
        clock.advance(days=1)
        ledger.close(loser, 90.0)

        assert [t.id for t in ledger.active_trades] == [second, first]
        assert [t.id for t in ledger.closed_trades] == [loser, winner]
        assert [t.id for t in ledger.filter('closed', profitable=True)] == [winner]
        assert [t.id for t in ledger.filter('closed', profitable=False)] == [loser]
        assert ledger.active_symbols() == ['AAPL', 'MSFT']

    def test_trades_by_currency(self, ledger):
        _open(ledger)
        _open(ledger, symbol='VOD.L')
        grouped = ledger.trades_by_currency()
        assert set(grouped) == {'$', '£'}


class TestRefresh:
    def test_updates_price_and_holding_days(self, ledger, price_feed, clock):
        trade_id = _open(ledger)
        clock.advance(days=3)
        price_feed.prices['AAPL'] = 104.0

        report = ledger.refresh_prices()
        trade = ledger.get(trade_id)
        assert report.updated == ['AAPL']
        assert trade.current_price == 104.0
        assert trade.current_pl_percent == pytest.approx(4.0)
        assert trade.current_pl_value == pytest.approx(40.0)
        assert trade.holding_days == 3

    def test_target_auto_close(self, ledger, price_feed, events):
        trade_id = _open(ledger)
        price_feed.prices['AAPL'] = 111.0

        report = ledger.refresh_prices()
        trade = ledger.get(trade_id)
        assert report.closed == [trade_id]
        assert trade.exit_reason == 'Target Reached'
        assert trade.exit_price == 111.0
        assert trade.pl_percent == pytest.approx(11.0)
        kinds = [e.kind for e in events]
        assert kinds[-2:] == [TRADE_CLOSED, PRICES_UPDATED]
        assert events[-2].payload['automatic'] is True

    def test_stop_loss_auto_close(self, ledger, price_feed):
        trade_id = _open(ledger)
        price_feed.prices['AAPL'] = 94.0
        ledger.refresh_prices()
        assert ledger.get(trade_id).exit_reason == 'Stop Loss Hit'

    def test_square_off_auto_close(self, ledger, price_feed, clock):
        trade_id = _open(ledger, square_off_date=clock.now + timedelta(days=2))
        price_feed.prices['AAPL'] = 100.0

        ledger.refresh_prices()
        assert ledger.get(trade_id).is_active

        clock.advance(days=2)
        ledger.refresh_prices()
        assert ledger.get(trade_id).exit_reason == 'Time Exit'

    def test_partial_failure_keeps_last_price(self, ledger, price_feed):
        good = _open(ledger)
        bad = _open(ledger, symbol='MSFT', entry=300.0, stop=280.0, target=330.0)
        price_feed.prices['AAPL'] = 102.0
        price_feed.errors['MSFT'] = TransientPriceFeedError('MSFT', 'timeout')

        report = ledger.refresh_prices()
        assert report.updated == ['AAPL']
        assert list(report.failed) == ['MSFT']
        assert report.total == 2
        assert ledger.get(good).current_price == 102.0
        assert ledger.get(bad).current_price == 300.0

    def test_unexpected_errors_recorded(self, ledger, price_feed):
        _open(ledger)
        price_feed.errors['AAPL'] = KeyError('AAPL')
        report = ledger.refresh_prices()
        assert 'AAPL' in report.failed
        assert report.updated == []

    def test_symbol_fetched_once_for_many_trades(self, ledger, price_feed):
        _open(ledger)
        _open(ledger, amount=500.0)
        price_feed.prices['AAPL'] = 101.0

        ledger.refresh_prices()
        assert price_feed.calls == ['AAPL']
        assert all(t.current_price == 101.0 for t in ledger.active_trades)

    def test_trade_deleted_during_fetch_is_skipped(self, ledger, price_feed, store):
        trade_id = _open(ledger)
        price_feed.prices['AAPL'] = 111.0

        fetched = ledger.fetch_prices(ledger.active_symbols())
        ledger.delete(trade_id)
        saves = store.save_calls
        report = ledger.apply_prices(fetched)

        assert report.updated == []
        assert report.closed == []
        assert store.save_calls == saves

    def test_save_failure_rolls_back_prices(self, ledger, price_feed, store):
        trade_id = _open(ledger)
        price_feed.prices['AAPL'] = 111.0
        store.fail = True

        report = ledger.refresh_prices()
        assert report.persisted is False
        assert report.closed == []
        assert ledger.get(trade_id).is_active
        assert ledger.get(trade_id).current_price == 100.0

    def test_no_active_trades(self, ledger, price_feed):
        report = ledger.refresh_prices()
        assert report.total == 0
        assert price_feed.calls == []

    def test_requires_price_feed(self, store, clock):
        ledger = TradeLedger(store, clock=clock)
        _open(ledger)
        with pytest.raises(ValueError):
            ledger.refresh_prices()

    def test_data_error_reported(self, ledger, price_feed):
        _open(ledger)
        price_feed.errors['AAPL'] = PriceDataError('AAPL', 'no quote')
        report = ledger.refresh_prices()
        assert report.failed['AAPL'] == 'AAPL: no quote'

    @pytest.mark.parametrize("quote", [float('nan'), float('inf'), 0, -3.5])
    def test_unusable_quote_reported(self, ledger, price_feed, store, quote):
        trade_id = _open(ledger)
        saves = store.save_calls
        price_feed.prices['AAPL'] = quote

        report = ledger.refresh_prices()
        assert 'AAPL' in report.failed
        assert 'unusable price' in report.failed['AAPL']
        assert report.updated == []
        assert ledger.get(trade_id).current_price == 100.0
        assert store.save_calls == saves

    def test_unusable_price_in_report_not_applied(self, ledger, store):
        trade_id = _open(ledger)
        saves = store.save_calls

        report = ledger.apply_prices(RefreshReport(prices={'AAPL': float('nan')}))
        assert list(report.failed) == ['AAPL']
        assert report.updated == []
        assert ledger.get(trade_id).current_price == 100.0
        assert store.save_calls == saves

    def test_failing_symbol_isolated(self, ledger, price_feed, store, monkeypatch, events):
        good = _open(ledger)
        bad = _open(ledger, symbol='MSFT', entry=300.0, stop=280.0, target=330.0)
        price_feed.prices.update({'AAPL': 111.0, 'MSFT': 310.0})
        real_exit_reason = ledger_module.live_exit_reason

        def exit_reason(current_price, *args):
            if current_price == 310.0:
                raise ArithmeticError("bad revaluation")
            return real_exit_reason(current_price, *args)

        monkeypatch.setattr(ledger_module, 'live_exit_reason', exit_reason)
        report = ledger.refresh_prices()

        assert report.updated == ['AAPL']
        assert report.closed == [good]
        assert report.failed['MSFT'] == 'MSFT: bad revaluation'
        assert ledger.get(good).exit_reason == 'Target Reached'
        failed_trade = ledger.get(bad)
        assert failed_trade.is_active
        assert failed_trade.current_price == 300.0
        assert [t.to_dict() for t in ledger.trades] == store.saved
        assert events[-1].kind == PRICES_UPDATED

    def test_unexpected_apply_error_restores_ledger(self, ledger, price_feed, store, monkeypatch):
        _open(ledger)
        _open(ledger, symbol='MSFT', entry=300.0, stop=280.0, target=330.0)
        price_feed.prices.update({'AAPL': 111.0, 'MSFT': 310.0})
        before = [t.to_dict() for t in ledger.trades]

        def broken(*args):
            raise RuntimeError("evaluation failed")

        monkeypatch.setattr(ledger_module, 'live_exit_reason', broken)
        with pytest.raises(RuntimeError):
            ledger.refresh_prices()

        assert [t.to_dict() for t in ledger.trades] == before
        assert before == store.saved


class TestImportExport:
    def _populate(self, ledger):
        active = _open(ledger)
        closed = _open(ledger, symbol='TCS.NS', entry=3500.0, amount=35000.0, stop=3300.0, target=3800.0)
        ledger.close(closed, 3600.0)
        return active, closed

    def test_export_replace_round_trip(self, ledger, store, clock):
        self._populate(ledger)
        document = ledger.export()

        other = TradeLedger(type(store)(), clock=clock)
        result = other.import_trades(json.dumps(document), mode='replace')

        assert result.added == 2
        assert result.errors == 0
        assert sorted(t.to_dict()['id'] for t in other.trades) == sorted(t.id for t in ledger.trades)
        for trade in ledger.trades:
            assert other.get(trade.id) == trade

    def test_merge_is_idempotent(self, ledger, events):
        self._populate(ledger)
        document = ledger.export()
        before = {t.id: t.to_dict() for t in ledger.trades}

        first = ledger.import_trades(document, mode='merge')
        second = ledger.import_trades(document, mode='merge')

        assert (first.added, first.updated) == (0, 2)
        assert (second.added, second.updated) == (0, 2)
        assert {t.id: t.to_dict() for t in ledger.trades} == before
        assert events[-1].kind == TRADES_IMPORTED

    def test_merge_adds_unknown_ids(self, ledger, store, clock):
        self._populate(ledger)
        other = TradeLedger(type(store)(), clock=lambda: datetime(2024, 2, 1))
        _open(other, symbol='MSFT')

        result = ledger.import_trades(other.export(), mode='merge')
        assert (result.added, result.updated) == (1, 0)
        assert len(ledger.trades) == 3

    def test_add_assigns_fresh_ids(self, ledger):
        self._populate(ledger)
        document = ledger.export()
        result = ledger.import_trades(document, mode='add')

        assert result.added == 2
        assert len(ledger.trades) == 4
        assert len({t.id for t in ledger.trades}) == 4

    def test_replace_keeps_active(self, ledger, store, clock):
        keep = _open(ledger, symbol='MSFT')
        source = TradeLedger(type(store)(), clock=lambda: datetime(2024, 2, 1))
        imported = _open(source)
        source.close(imported, 105.0)

        result = ledger.import_trades(source.export(), mode='replace', keep_active=True)
        assert result.kept == 1
        assert {t.id for t in ledger.trades} == {keep, imported}

    def test_replace_without_keep_active(self, ledger, store, clock):
        _open(ledger, symbol='MSFT')
        source = TradeLedger(type(store)(), clock=lambda: datetime(2024, 2, 1))
        imported = _open(source)

        result = ledger.import_trades(source.export(), mode='replace', keep_active=False)
        assert result.kept == 0
        assert [t.id for t in ledger.trades] == [imported]

    def test_invalid_payload_leaves_ledger_untouched(self, ledger, store):
        trade_id = _open(ledger)
        saves = store.save_calls

        result = ledger.import_trades('{"metadata": {}, "trades": []}')
        assert result.errors == 1
        assert result.error
        assert [t.id for t in ledger.trades] == [trade_id]
        assert store.save_calls == saves

    def test_invalid_json(self, ledger):
        result = ledger.import_trades('not json')
        assert result.errors == 1
        assert 'JSON' in result.error

    def test_unknown_mode(self, ledger):
        with pytest.raises(ValueError):
            ledger.import_trades({'metadata': {}, 'trades': []}, mode='overwrite')

    def test_bad_trade_counted(self, ledger):
        self._populate(ledger)
        document = ledger.export()
        document['trades'].append('garbage')

        result = ledger.import_trades(document, mode='merge')
        assert result.errors == 1
        assert result.total == 3

    def test_unusable_trades_rejected_on_import(self, ledger, price_feed):
        document = {'metadata': {}, 'trades': [
            {'id': 'bad_price', 'stockName': 'Apple', 'symbol': 'AAPL', 'entryPrice': 'abc', 'shares': 10,
             'entryDate': '2024-01-05', 'status': 'active'},
            {'id': 'no_exit', 'stockName': 'Microsoft', 'symbol': 'MSFT', 'entryPrice': 300, 'shares': 2,
             'entryDate': '2024-01-02', 'status': 'closed'},
            {'id': 'good', 'stockName': 'Nvidia', 'symbol': 'NVDA', 'entryPrice': 500, 'shares': 2,
             'entryDate': '2024-01-03', 'status': 'active'},
        ]}

        result = ledger.import_trades(document, mode='merge')
        assert (result.added, result.errors, result.total) == (1, 2, 3)
        assert [t.id for t in ledger.trades] == ['good']

        price_feed.prices['NVDA'] = 510.0
        report = ledger.refresh_prices()
        assert report.updated == ['NVDA']
        assert ledger.get('good').current_pl_percent == pytest.approx(2.0)

    def test_save_failure(self, ledger, store):
        self._populate(ledger)
        document = ledger.export()
        store.fail = True

        result = ledger.import_trades(document, mode='add')
        assert result.errors == 1
        assert result.error == "Failed to save imported trades to storage"
        assert len(ledger.trades) == 2

    def test_history_csv(self, ledger):
        self._populate(ledger)
        lines = ledger.export_history_csv().strip().splitlines()
        assert len(lines) == 2
        assert 'TCS.NS' in lines[1]


class TestListeners:
    def test_failing_listener_does_not_break_ledger(self, ledger):
        def broken(event):
            raise RuntimeError("listener failed")

        ledger.subscribe(broken)
        assert _open(ledger) is not None

    def test_unsubscribe(self, ledger):
        received = []
        ledger.subscribe(received.append)
        ledger.unsubscribe(received.append)
        _open(ledger)
        assert received == []
