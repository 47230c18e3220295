"""Tests for the ledger import/export document format."""

from datetime import datetime

import pytest

from dti_trader.live.interchange import (
    DATA_VERSION,
    HISTORY_CSV_COLUMNS,
    ImportValidationError,
    build_export_document,
    export_history_csv,
    is_version_compatible,
    parse_import_payload,
    prepare_trade,
    validate_import_data
)
from dti_trader.live.trade import STATUS_ACTIVE


NOW = datetime(2024, 1, 10, 12, 0)


def _document(trades, version=DATA_VERSION):
    return {'metadata': {'version': version}, 'trades': trades}


RAW_ACTIVE = {
    'id': 'trade_1',
    'stockName': 'Apple',
    'symbol': 'AAPL',
    'entryPrice': 100,
    'entryDate': '2024-01-05T00:00:00.000Z',
    'shares': 10,
    'investmentAmount': 1000,
    'currentPrice': 104,
    'status': 'active'
}


class TestValidation:
    def test_version_compatibility(self):
        assert is_version_compatible('1.4.2')
        assert not is_version_compatible('2.0.0')

    def test_valid_document(self):
        validate_import_data(_document([RAW_ACTIVE]))

    def test_version_mismatch_only_warns(self):
        validate_import_data(_document([RAW_ACTIVE], version='2.0.0'))

    @pytest.mark.parametrize("data", [
        [],
        {'trades': [RAW_ACTIVE]},
        {'metadata': {}, 'trades': 'x'},
        {'metadata': {}, 'trades': []},
        {'metadata': {}, 'trades': ['x']},
        {'metadata': {}, 'trades': [{'symbol': 'AAPL', 'entryPrice': 1, 'status': 'active'}]},
    ])
    def test_invalid_documents(self, data):
        with pytest.raises(ImportValidationError):
            validate_import_data(data)

    def test_parse_invalid_json(self):
        with pytest.raises(ImportValidationError):
            parse_import_payload('{oops')

    def test_parse_passes_dicts_through(self):
        document = _document([RAW_ACTIVE])
        assert parse_import_payload(document) is document


class TestPrepareTrade:
    def test_active_trade_revalued(self):
        trade = prepare_trade(dict(RAW_ACTIVE), NOW)
        assert trade.status == STATUS_ACTIVE
        assert trade.currency_symbol == '$'
        assert trade.entry_date == datetime(2024, 1, 5)
        assert trade.current_pl_percent == pytest.approx(4.0)
        assert trade.holding_days == 5

    def test_missing_current_price_uses_entry(self):
        raw = dict(RAW_ACTIVE)
        del raw['currentPrice']
        trade = prepare_trade(raw, NOW)
        assert trade.current_price == 100

    def test_non_dict_rejected(self):
        with pytest.raises(ValueError):
            prepare_trade('trade', NOW)

    @pytest.mark.parametrize("entry_price", ['abc', 0, -5, None])
    def test_invalid_entry_price_rejected(self, entry_price):
        with pytest.raises(ValueError, match="entry price"):
            prepare_trade(dict(RAW_ACTIVE, entryPrice=entry_price), NOW)

    @pytest.mark.parametrize("shares", [0, -1, 'ten'])
    def test_invalid_shares_rejected(self, shares):
        with pytest.raises(ValueError, match="share count"):
            prepare_trade(dict(RAW_ACTIVE, shares=shares), NOW)

    def test_missing_shares_rejected(self):
        raw = dict(RAW_ACTIVE)
        del raw['shares']
        with pytest.raises(ValueError, match="share count"):
            prepare_trade(raw, NOW)

    def test_unparseable_entry_date_rejected(self):
        with pytest.raises(ValueError, match="entry date"):
            prepare_trade(dict(RAW_ACTIVE, entryDate='someday'), NOW)

    @pytest.mark.parametrize("status", ['pending', 'ACTIVE'])
    def test_unknown_status_rejected(self, status):
        with pytest.raises(ValueError, match="unknown status"):
            prepare_trade(dict(RAW_ACTIVE, status=status), NOW)

    def test_closed_without_exit_fields_rejected(self):
        with pytest.raises(ValueError, match="exit date and exit price"):
            prepare_trade(dict(RAW_ACTIVE, status='closed'), NOW)

    def test_closed_without_exit_price_rejected(self):
        raw = dict(RAW_ACTIVE, status='closed', exitDate='2024-01-09T00:00:00')
        with pytest.raises(ValueError, match="exit date and exit price"):
            prepare_trade(raw, NOW)

    def test_closed_realized_pl_recomputed(self):
        raw = dict(RAW_ACTIVE, status='closed', exitDate='2024-01-09T00:00:00',
                   exitPrice=90, exitReason='Stop Loss Hit')
        trade = prepare_trade(raw, NOW)

        assert trade.is_closed
        assert trade.pl_percent == pytest.approx(-10.0)
        assert trade.pl_value == pytest.approx(-100.0)

    def test_closed_realized_pl_kept(self):
        raw = dict(RAW_ACTIVE, status='closed', exitDate='2024-01-09T00:00:00',
                   exitPrice=90, plPercent=-10.0, plValue=-100.0)
        trade = prepare_trade(raw, NOW)
        assert trade.pl_value == -100.0


class TestExport:
    def test_export_document_metadata(self):
        active = prepare_trade(dict(RAW_ACTIVE), NOW)
        closed = prepare_trade(dict(RAW_ACTIVE, id='trade_2'), NOW)
        closed.apply_exit(110.0, 'Target Reached', NOW)

        document = build_export_document([active, closed], NOW)
        metadata = document['metadata']
        assert metadata['version'] == DATA_VERSION
        assert metadata['exportDate'] == '2024-01-10T12:00:00.000Z'
        assert metadata['tradeCount'] == 2
        assert metadata['activeCount'] == 1
        assert metadata['closedCount'] == 1
        assert document['trades'][1]['exitReason'] == 'Target Reached'

    def test_history_csv(self):
        closed = prepare_trade(dict(RAW_ACTIVE), NOW)
        closed.apply_exit(110.0, 'Target Reached', NOW)

        lines = export_history_csv([closed]).strip().splitlines()
        assert lines[0] == ','.join(HISTORY_CSV_COLUMNS)
        assert lines[1].startswith('Apple,AAPL,2024-01-05,100.0,2024-01-10,110.0,5,')

    def test_history_csv_empty(self):
        assert export_history_csv([]).strip() == ','.join(HISTORY_CSV_COLUMNS)
