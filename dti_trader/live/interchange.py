# -*- coding: utf-8 -*-
"""
Ledger import/export document format.

Export documents carry a metadata block and the full trade list::

    {
      "metadata": {"version": "1.0.0", "exportDate": "...", "tradeCount": 3,
                   "activeCount": 1, "closedCount": 2},
      "trades": [...]
    }

Only the major version component is checked on import; a mismatch is logged
but does not block the import.
"""

import json
import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Union

import pandas as pd

from dti_trader.live.trade import LedgerTrade, STATUS_ACTIVE, STATUS_CLOSED, currency_symbol_for


logger = logging.getLogger(__name__)


DATA_VERSION = "1.0.0"
REQUIRED_TRADE_FIELDS = ('stockName', 'symbol', 'entryPrice', 'status')
TRADE_STATUSES = (STATUS_ACTIVE, STATUS_CLOSED)

HISTORY_CSV_COLUMNS = ['Stock', 'Symbol', 'Entry Date', 'Entry Price', 'Exit Date', 'Exit Price',
                       'Holding Days', 'Investment', 'Shares', 'P/L %', 'P/L Value',
                       'Exit Reason', 'Notes', 'Currency']


class ImportValidationError(ValueError):
    """Raised when an import document has the wrong shape."""


def _is_positive(value) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def is_version_compatible(import_version: str, current_version: str = DATA_VERSION) -> bool:
    """Compare major version components."""
    return str(import_version).split('.')[0] == str(current_version).split('.')[0]


def parse_import_payload(payload: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """Accept a JSON string or an already parsed document."""
    if isinstance(payload, (str, bytes)):
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise ImportValidationError(f"Import data is not valid JSON: {e}") from e
    return payload


def validate_import_data(data: Any):
    """
    Check the shape of an import document before anything is mutated.

    Raises
    ------
    ImportValidationError
        If the document is not a dict, lacks a metadata dict, has no
        trades, or its first trade is missing a required field.
    """
    if not isinstance(data, dict):
        raise ImportValidationError("Import data must be an object")
    metadata = data.get('metadata')
    if not isinstance(metadata, dict):
        raise ImportValidationError("Import data is missing the metadata block")
    trades = data.get('trades')
    if not isinstance(trades, list):
        raise ImportValidationError("Import data is missing the trades list")

    version = metadata.get('version')
    if version and not is_version_compatible(version):
        logger.warning(
            f"Import data version ({version}) might not be compatible with "
            f"current version ({DATA_VERSION})"
        )

    if not trades:
        raise ImportValidationError("Import data contains no trades")

    sample = trades[0]
    if not isinstance(sample, dict):
        raise ImportValidationError("Imported trades must be objects")
    for required in REQUIRED_TRADE_FIELDS:
        if required not in sample:
            raise ImportValidationError(f"Required field missing in imported trade: {required}")


def prepare_trade(raw: Dict[str, Any], now: datetime) -> LedgerTrade:
    """
    Normalize one imported trade.

    Parses dates and numbers, fills a missing currency tag from the symbol
    and, for active trades, recomputes the mark-to-market fields. Closed
    trades missing their realized P/L get it recomputed from the exit price.

    Raises
    ------
    ValueError
        If the trade has no usable entry price, share count, entry date or
        status, or is closed without an exit date and exit price.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Imported trade must be an object, got {type(raw).__name__}")

    trade = LedgerTrade.from_dict(raw)
    label = trade.id or trade.symbol or '<unnamed>'
    if not _is_positive(trade.entry_price):
        raise ValueError(f"Trade {label}: invalid entry price {raw.get('entryPrice')!r}")
    if not _is_positive(trade.shares):
        raise ValueError(f"Trade {label}: invalid share count {raw.get('shares')!r}")
    if trade.entry_date is None:
        raise ValueError(f"Trade {label}: invalid entry date {raw.get('entryDate')!r}")
    if trade.status not in TRADE_STATUSES:
        raise ValueError(f"Trade {label}: unknown status {trade.status!r}")

    if not trade.currency_symbol:
        trade.currency_symbol = currency_symbol_for(trade.symbol)

    if trade.status == STATUS_ACTIVE:
        if not trade.current_price:
            trade.current_price = trade.entry_price
        trade.refresh_valuation(now)
        return trade

    if trade.exit_date is None or not _is_positive(trade.exit_price):
        raise ValueError(f"Trade {label}: closed trade without exit date and exit price")
    if trade.pl_percent is None or trade.pl_value is None:
        trade.pl_percent = (trade.exit_price - trade.entry_price) / trade.entry_price * 100
        trade.pl_value = trade.shares * trade.exit_price - trade.shares * trade.entry_price
    return trade


def build_export_document(trades: Iterable[LedgerTrade], now: datetime) -> Dict[str, Any]:
    """Serialize the ledger into an export document."""
    trades = list(trades)
    active = sum(1 for t in trades if t.is_active)
    return {
        'metadata': {
            'version': DATA_VERSION,
            'exportDate': now.isoformat(timespec='milliseconds') + 'Z',
            'tradeCount': len(trades),
            'activeCount': active,
            'closedCount': len(trades) - active
        },
        'trades': [t.to_dict() for t in trades]
    }


def export_history_csv(closed_trades: List[LedgerTrade]) -> str:
    """Closed trades as CSV text, one row per trade."""
    rows = []
    for t in closed_trades:
        rows.append({
            'Stock': t.stock_name,
            'Symbol': t.symbol,
            'Entry Date': t.entry_date.strftime('%Y-%m-%d') if t.entry_date else '',
            'Entry Price': round(t.entry_price, 2),
            'Exit Date': t.exit_date.strftime('%Y-%m-%d') if t.exit_date else '',
            'Exit Price': round(t.exit_price, 2),
            'Holding Days': t.closed_holding_days(),
            'Investment': round(t.investment_amount, 2),
            'Shares': t.shares,
            'P/L %': round(t.pl_percent, 2),
            'P/L Value': round(t.pl_value, 2),
            'Exit Reason': t.exit_reason,
            'Notes': t.notes or '',
            'Currency': t.currency_symbol
        })
    frame = pd.DataFrame(rows, columns=HISTORY_CSV_COLUMNS)
    return frame.to_csv(index=False)
