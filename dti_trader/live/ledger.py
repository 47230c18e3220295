# -*- coding: utf-8 -*-
"""
Trade ledger.

Authoritative set of real trades. Every mutation goes through the ledger,
is persisted as a whole through a ``TradeStore`` and bumps ``version`` so
cached analytics know when to recompute. A mutation whose save fails is
rolled back in memory.

Active trades are re-evaluated against their stop loss, target and
square-off date whenever their price is refreshed or they are edited. The
checks run in the order stop loss, target, time.
"""

import copy
import logging
import math
from contextlib import contextmanager
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from dti_trader.backtesting.config import BacktestParams
from dti_trader.backtesting.exit_rules import live_exit_reason
from dti_trader.live.interchange import (
    ImportValidationError,
    build_export_document,
    export_history_csv,
    parse_import_payload,
    prepare_trade,
    validate_import_data
)
from dti_trader.live.price_feed import PriceDataError, PriceFeed, PriceFeedError
from dti_trader.live.store import TradeStore
from dti_trader.live.trade import (
    LedgerTrade,
    STATUS_ACTIVE,
    STATUS_CLOSED,
    currency_symbol_for,
    generate_trade_id,
    parse_datetime,
    utc_now
)


logger = logging.getLogger(__name__)


# Event kinds
TRADE_CREATED = "trade_created"
TRADE_EDITED = "trade_edited"
TRADE_CLOSED = "trade_closed"
TRADE_DELETED = "trade_deleted"
HISTORY_CLEARED = "history_cleared"
TRADES_IMPORTED = "trades_imported"
PRICES_UPDATED = "prices_updated"

EDITABLE_FIELDS = ('entry_price', 'stop_loss_price', 'target_price', 'square_off_date', 'notes')
IMPORT_MODES = ('merge', 'add', 'replace')
MANUAL_EXIT_REASON = "Manual Exit"


class TradeValidationError(ValueError):
    """Raised when trade input data is invalid."""


@dataclass
class LedgerEvent:
    """Notification emitted after a successful ledger mutation."""

    kind: str
    trade_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RefreshReport:
    """Outcome of one price refresh cycle."""

    updated: List[str] = field(default_factory=list)  # symbols with a new price
    failed: Dict[str, str] = field(default_factory=dict)  # symbol -> error message
    closed: List[str] = field(default_factory=list)  # trade ids auto-closed
    prices: Dict[str, float] = field(default_factory=dict)  # fetched, not yet applied
    persisted: bool = True

    @property
    def total(self) -> int:
        return len(self.updated) + len(self.failed)


@dataclass
class ImportResult:
    """Counters reported by ``TradeLedger.import_trades``."""

    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0
    kept: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'added': self.added,
            'updated': self.updated,
            'skipped': self.skipped,
            'errors': self.errors,
            'total': self.total,
            'kept': self.kept
        }
        if self.error:
            data['error'] = self.error
        return data


def _require_positive(name: str, value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise TradeValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number) or number <= 0:
        raise TradeValidationError(f"{name} must be a positive number, got {value!r}")
    return number


def _optional_price(name: str, value) -> Optional[float]:
    if value is None:
        return None
    return _require_positive(name, value)


def _optional_date(name: str, value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise TradeValidationError(f"{name} must be a date, got {value!r}")
    return parsed


def _sort_for_storage(trades: List[LedgerTrade]) -> List[LedgerTrade]:
    """Active trades first by entry date, then closed trades by exit date, newest first."""
    active = sorted((t for t in trades if t.is_active),
                    key=lambda t: t.entry_date or datetime.min, reverse=True)
    closed = sorted((t for t in trades if not t.is_active),
                    key=lambda t: t.exit_date or datetime.min, reverse=True)
    return active + closed


class TradeLedger:
    """Lifecycle manager for real trades."""

    def __init__(self, store: TradeStore, price_feed: Optional[PriceFeed] = None,
                 clock: Callable[[], datetime] = utc_now, max_workers: int = 8):
        """
        Initialize ledger and load persisted trades.

        Parameters
        ----------
        store : TradeStore
            Persistence backend.
        price_feed : PriceFeed, optional
            Source of latest prices for ``refresh_prices``.
        clock : callable, optional
            Returns the current naive UTC datetime.
        max_workers : int, optional
            Upper bound on concurrent price fetches.
        """
        self.store = store
        self.price_feed = price_feed
        self.clock = clock
        self.max_workers = max_workers
        self.version = 0

        self._trades: List[LedgerTrade] = store.load()
        self._listeners: List[Callable[[LedgerEvent], None]] = []

        logger.info(
            f"Initialized TradeLedger with {len(self.active_trades)} active and "
            f"{len(self.closed_trades)} closed trade(s)"
        )

    # ========================================================================
    # Events
    # ========================================================================

    def subscribe(self, listener: Callable[[LedgerEvent], None]):
        """Register a callback invoked with every ``LedgerEvent``."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[LedgerEvent], None]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, kind: str, trade_id: Optional[str] = None, **payload):
        event = LedgerEvent(kind=kind, trade_id=trade_id, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Ledger listener failed on {kind}: {e}", exc_info=True)

    # ========================================================================
    # Persistence
    # ========================================================================

    def _snapshot(self) -> List[LedgerTrade]:
        return copy.deepcopy(self._trades)

    def _commit(self, snapshot: List[LedgerTrade]) -> bool:
        """Persist the current state or restore ``snapshot`` if saving fails."""
        if self.store.save(self._trades):
            self.version += 1
            return True
        logger.warning("Failed to persist ledger, rolling back in-memory changes")
        self._trades = snapshot
        return False

    @contextmanager
    def _transaction(self):
        """
        Snapshot the trade list for one mutation.

        Yields the snapshot for ``_commit``. If the mutation raises, the
        snapshot is restored before the exception propagates, so memory never
        drifts from what was last persisted.
        """
        snapshot = self._snapshot()
        try:
            yield snapshot
        except Exception:
            logger.error("Ledger mutation failed, restoring previous state")
            self._trades = snapshot
            raise

    # ========================================================================
    # Queries
    # ========================================================================

    @property
    def trades(self) -> List[LedgerTrade]:
        return list(self._trades)

    @property
    def active_trades(self) -> List[LedgerTrade]:
        """Active trades, most recent entry first."""
        return sorted((t for t in self._trades if t.is_active),
                      key=lambda t: t.entry_date or datetime.min, reverse=True)

    @property
    def closed_trades(self) -> List[LedgerTrade]:
        """Closed trades, most recent exit first."""
        return sorted((t for t in self._trades if t.is_closed),
                      key=lambda t: t.exit_date or datetime.min, reverse=True)

    def get(self, trade_id: str) -> Optional[LedgerTrade]:
        for trade in self._trades:
            if trade.id == trade_id:
                return trade
        return None

    def filter(self, status: str = 'all', profitable: Optional[bool] = None) -> List[LedgerTrade]:
        """
        Trades by status, optionally restricted by realized profitability.

        Parameters
        ----------
        status : {'all', 'active', 'closed'}
        profitable : bool or None
            True keeps trades with positive P/L, False the rest. Ignored for
            active trades.
        """
        if status == STATUS_ACTIVE:
            result = self.active_trades
        elif status == STATUS_CLOSED:
            result = self.closed_trades
        else:
            result = self.trades

        if profitable is not None and status != STATUS_ACTIVE:
            if profitable:
                result = [t for t in result if (t.pl_percent or 0) > 0]
            else:
                result = [t for t in result if (t.pl_percent or 0) <= 0]
        return result

    def trades_by_currency(self, status: str = 'all') -> Dict[str, List[LedgerTrade]]:
        grouped: Dict[str, List[LedgerTrade]] = {}
        for trade in self.filter(status):
            grouped.setdefault(trade.currency_symbol or currency_symbol_for(trade.symbol), []).append(trade)
        return grouped

    def active_symbols(self) -> List[str]:
        """Distinct symbols of active trades, sorted."""
        return sorted({t.symbol for t in self._trades if t.is_active})

    # ========================================================================
    # Exit evaluation
    # ========================================================================

    def _evaluate_status(self, trade: LedgerTrade, now: datetime) -> Optional[str]:
        """Revalue an active trade and close it if an exit condition holds."""
        if not trade.is_active:
            return None
        trade.refresh_valuation(now)
        reason = live_exit_reason(
            trade.current_price, trade.stop_loss_price, trade.target_price,
            now, trade.square_off_date
        )
        if reason is not None:
            trade.apply_exit(trade.current_price, reason, now)
            logger.info(
                f"Trade {trade.id} ({trade.symbol}) closed automatically: {reason} "
                f"@ {trade.exit_price} ({trade.pl_percent:+.2f}%)"
            )
        return reason

    # ========================================================================
    # Mutations
    # ========================================================================

    def _new_trade_id(self, now: datetime) -> str:
        existing = {t.id for t in self._trades}
        trade_id = generate_trade_id(now)
        while trade_id in existing:
            trade_id = generate_trade_id(now)
        return trade_id

    def create(self, symbol: str, entry_price: float, investment_amount: float,
               stop_loss_price: Optional[float] = None, target_price: Optional[float] = None,
               square_off_date=None, stock_name: Optional[str] = None, entry_date=None,
               stop_loss_percent: Optional[float] = None,
               take_profit_percent: Optional[float] = None,
               currency_symbol: Optional[str] = None, notes: str = '') -> Optional[str]:
        """
        Open a new trade.

        Missing stop/target prices are derived from the percentages and
        vice versa.

        Returns
        -------
        str or None
            New trade id, or None if the ledger could not be persisted.

        Raises
        ------
        TradeValidationError
            If the symbol is empty or a price/amount is not positive.
        """
        if not symbol:
            raise TradeValidationError("symbol is required")
        entry_price = _require_positive('entry_price', entry_price)
        investment_amount = _require_positive('investment_amount', investment_amount)
        stop_loss_price = _optional_price('stop_loss_price', stop_loss_price)
        target_price = _optional_price('target_price', target_price)

        if stop_loss_price is None and stop_loss_percent is not None:
            stop_loss_price = entry_price * (1 - float(stop_loss_percent) / 100)
        if target_price is None and take_profit_percent is not None:
            target_price = entry_price * (1 + float(take_profit_percent) / 100)
        if stop_loss_price is not None:
            stop_loss_percent = (entry_price - stop_loss_price) / entry_price * 100
        if target_price is not None:
            take_profit_percent = (target_price - entry_price) / entry_price * 100

        now = self.clock()
        trade = LedgerTrade(
            id=self._new_trade_id(now),
            symbol=symbol,
            stock_name=stock_name or symbol,
            entry_date=_optional_date('entry_date', entry_date) or now,
            entry_price=entry_price,
            investment_amount=investment_amount,
            shares=investment_amount / entry_price,
            status=STATUS_ACTIVE,
            currency_symbol=currency_symbol or currency_symbol_for(symbol),
            current_price=entry_price,
            stop_loss_price=stop_loss_price,
            target_price=target_price,
            stop_loss_percent=stop_loss_percent,
            take_profit_percent=take_profit_percent,
            square_off_date=_optional_date('square_off_date', square_off_date),
            notes=notes or ''
        )
        trade.refresh_valuation(now)

        with self._transaction() as snapshot:
            self._trades.append(trade)
            if not self._commit(snapshot):
                return None

        logger.info(f"New trade {trade.id}: {trade.shares:.4f} shares of {trade.stock_name} @ {entry_price}")
        self._emit(TRADE_CREATED, trade.id)
        return trade.id

    def create_from_signal(self, signal, investment_amount: float,
                           params: Optional[BacktestParams] = None, symbol: Optional[str] = None,
                           stock_name: Optional[str] = None, entry_price: Optional[float] = None,
                           notes: Optional[str] = None) -> Optional[str]:
        """
        Open a trade from a scanned backtest signal.

        Stop and target prices come from the strategy's stop-loss and
        take-profit percentages, and the square-off date is
        ``max_holding_days`` after the trade is taken.

        Parameters
        ----------
        signal : ScanSignal or SimulatedTrade
            Open backtest trade. A ``ScanSignal`` also supplies the symbol
            and display name.
        investment_amount : float
            Amount invested.
        params : BacktestParams, optional
            Strategy the signal was produced with. Defaults to
            ``BacktestParams()``.
        entry_price : float, optional
            Fill price. Defaults to the signal's latest price.

        Returns
        -------
        str or None
            New trade id, or None if the ledger could not be persisted.
        """
        params = params if params is not None else BacktestParams()
        trade = getattr(signal, 'trade', signal)
        symbol = symbol or getattr(signal, 'symbol', None)
        stock_name = stock_name or getattr(signal, 'name', None)
        if entry_price is None:
            entry_price = trade.current_price

        if notes is None:
            signal_date = trade.signal_date if trade.signal_date is not None else trade.entry_date
            notes = f"DTI signal on {signal_date:%Y-%m-%d}"

        return self.create(
            symbol,
            entry_price,
            investment_amount,
            stock_name=stock_name,
            square_off_date=self.clock() + timedelta(days=params.max_holding_days),
            stop_loss_percent=params.stop_loss_percent,
            take_profit_percent=params.take_profit_percent,
            notes=notes
        )

    def edit(self, trade_id: str, **changes) -> bool:
        """
        Edit an active trade.

        Only ``entry_price``, ``stop_loss_price``, ``target_price``,
        ``square_off_date`` and ``notes`` may change. A new entry price
        recomputes the stop/target percentages against it, keeping the
        absolute stop and target prices unless new ones are given. The
        trade is re-evaluated for exit afterwards.

        Returns
        -------
        bool
            False if the trade is not an active trade or saving failed.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise TradeValidationError(f"Fields cannot be edited: {sorted(unknown)}")

        trade = self.get(trade_id)
        if trade is None or not trade.is_active:
            logger.error(f"Active trade not found for editing: {trade_id}")
            return False

        new_entry = _optional_price('entry_price', changes.get('entry_price'))
        new_stop = _optional_price('stop_loss_price', changes.get('stop_loss_price'))
        new_target = _optional_price('target_price', changes.get('target_price'))
        if 'square_off_date' in changes:
            new_square_off = _optional_date('square_off_date', changes['square_off_date'])

        with self._transaction() as snapshot:
            if new_entry is not None:
                trade.entry_price = new_entry
            if new_stop is not None:
                trade.stop_loss_price = new_stop
            if new_target is not None:
                trade.target_price = new_target
            if trade.stop_loss_price is not None:
                trade.stop_loss_percent = (trade.entry_price - trade.stop_loss_price) / trade.entry_price * 100
            if trade.target_price is not None:
                trade.take_profit_percent = (trade.target_price - trade.entry_price) / trade.entry_price * 100
            if 'square_off_date' in changes:
                trade.square_off_date = new_square_off
            if changes.get('notes') is not None:
                trade.notes = changes['notes']

            reason = self._evaluate_status(trade, self.clock())
            if not self._commit(snapshot):
                return False

        logger.info(f"Trade updated: {trade.stock_name} ({trade_id})")
        self._emit(TRADE_EDITED, trade_id, changes=sorted(changes))
        if reason is not None:
            self._emit(TRADE_CLOSED, trade_id, reason=reason, automatic=True)
        return True

    def close(self, trade_id: str, exit_price: float, reason: str = MANUAL_EXIT_REASON,
              notes: Optional[str] = None) -> bool:
        """
        Close an active trade manually.

        Parameters
        ----------
        trade_id : str
            Trade to close.
        exit_price : float
            Fill price.
        reason : str, optional
            Exit reason label.
        notes : str, optional
            Replaces the trade notes when given.
        """
        trade = self.get(trade_id)
        if trade is None or not trade.is_active:
            logger.error(f"Active trade not found for closing: {trade_id}")
            return False
        exit_price = _require_positive('exit_price', exit_price)

        with self._transaction() as snapshot:
            trade.apply_exit(exit_price, reason, self.clock())
            if notes:
                trade.notes = notes
            if not self._commit(snapshot):
                return False

        outcome = "profit" if trade.pl_percent >= 0 else "loss"
        logger.info(f"Trade closed: {trade.stock_name} with {outcome} of {abs(trade.pl_percent):.2f}%")
        self._emit(TRADE_CLOSED, trade_id, reason=reason, automatic=False)
        return True

    def delete(self, trade_id: str) -> bool:
        """Remove a trade of any status."""
        trade = self.get(trade_id)
        if trade is None:
            logger.error(f"Trade not found for deletion: {trade_id}")
            return False

        with self._transaction() as snapshot:
            self._trades = [t for t in self._trades if t.id != trade_id]
            if not self._commit(snapshot):
                return False

        logger.info(f"Trade deleted: {trade.stock_name} ({trade_id})")
        self._emit(TRADE_DELETED, trade_id, status=trade.status)
        return True

    def clear_history(self) -> bool:
        """Drop every closed trade, keeping active trades."""
        removed = sum(1 for t in self._trades if t.is_closed)
        with self._transaction() as snapshot:
            self._trades = [t for t in self._trades if t.is_active]
            if not self._commit(snapshot):
                return False

        logger.info(f"Trade history cleared ({removed} closed trade(s) removed)")
        self._emit(HISTORY_CLEARED, removed=removed)
        return True

    # ========================================================================
    # Price refresh
    # ========================================================================

    def fetch_prices(self, symbols: Iterable[str],
                     price_feed: Optional[PriceFeed] = None) -> RefreshReport:
        """
        Fetch latest prices for ``symbols`` concurrently.

        Waits for every fetch to finish. Does not touch ledger state.

        Returns
        -------
        RefreshReport
            Successful prices in ``prices``, failures in ``failed``.
        """
        feed = price_feed or self.price_feed
        if feed is None:
            raise ValueError("No price feed configured")

        symbols = list(symbols)
        report = RefreshReport()
        if not symbols:
            return report

        workers = max(1, min(self.max_workers, len(symbols)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(feed.fetch_latest_price, symbol): symbol for symbol in symbols}
            for future in as_completed(futures):
                symbol = futures[future]
                try:
                    price = float(future.result())
                    if not math.isfinite(price) or price <= 0:
                        raise PriceDataError(symbol, f"unusable price {price}")
                    report.prices[symbol] = price
                except PriceFeedError as e:
                    logger.error(f"Failed to update price for {symbol}: {e}")
                    report.failed[symbol] = str(e)
                except Exception as e:
                    logger.error(f"Unexpected error fetching {symbol}: {e}", exc_info=True)
                    report.failed[symbol] = str(e)
        return report

    def apply_prices(self, report: RefreshReport) -> RefreshReport:
        """
        Apply fetched prices to trades that are still active.

        Trades deleted or closed since the fetch started are skipped. Each
        symbol is applied on its own: if revaluing one of its trades fails,
        that symbol's trades are restored and the symbol moves to
        ``failed``. The ledger is saved once if at least one symbol was
        updated.
        """
        prices = report.prices
        if not prices:
            return report

        now = self.clock()
        with self._transaction() as snapshot:
            for symbol in sorted(prices):
                positions = [i for i, t in enumerate(self._trades) if t.is_active and t.symbol == symbol]
                if not positions:
                    continue
                if not math.isfinite(prices[symbol]) or prices[symbol] <= 0:
                    report.failed[symbol] = f"{symbol}: unusable price {prices[symbol]}"
                    continue
                originals = {i: copy.deepcopy(self._trades[i]) for i in positions}
                closed = []
                try:
                    for i in positions:
                        trade = self._trades[i]
                        trade.current_price = prices[symbol]
                        if not trade.currency_symbol:
                            trade.currency_symbol = currency_symbol_for(trade.symbol)
                        if self._evaluate_status(trade, now) is not None:
                            closed.append(trade.id)
                except (ArithmeticError, TypeError, ValueError) as e:
                    logger.error(f"Failed to apply price for {symbol}: {e}", exc_info=True)
                    for i, original in originals.items():
                        self._trades[i] = original
                    report.failed[symbol] = f"{symbol}: {e}"
                    continue
                report.closed.extend(closed)
                report.updated.append(symbol)

            if not report.updated:
                return report

            if not self._commit(snapshot):
                report.persisted = False
                report.closed = []
                return report

        for trade_id in report.closed:
            trade = self.get(trade_id)
            self._emit(TRADE_CLOSED, trade_id, reason=trade.exit_reason, automatic=True)
        self._emit(PRICES_UPDATED, updated=list(report.updated), failed=dict(report.failed))
        return report

    def refresh_prices(self, price_feed: Optional[PriceFeed] = None) -> RefreshReport:
        """
        Fetch prices for every active symbol and re-evaluate exits.

        A failed symbol keeps its last known price and is listed in
        ``RefreshReport.failed``.
        """
        symbols = self.active_symbols()
        if not symbols:
            return RefreshReport()

        report = self.apply_prices(self.fetch_prices(symbols, price_feed))
        logger.info(
            f"Prices updated ({len(report.updated)}/{len(symbols)})"
            + (f", {len(report.failed)} failed" if report.failed else "")
            + (f", {len(report.closed)} trade(s) auto-closed" if report.closed else "")
        )
        return report

    # ========================================================================
    # Import / export
    # ========================================================================

    def export(self) -> Dict[str, Any]:
        """Export every trade as an interchange document."""
        return build_export_document(_sort_for_storage(self._trades), self.clock())

    def export_history_csv(self) -> str:
        """Closed trades as CSV text."""
        return export_history_csv(self.closed_trades)

    def import_trades(self, payload, mode: str = 'merge', keep_active: bool = True) -> ImportResult:
        """
        Import trades from an export document.

        Parameters
        ----------
        payload : str or dict
            JSON text or parsed document.
        mode : {'merge', 'add', 'replace'}
            ``merge`` updates trades with a known id and adds the rest,
            ``add`` adds every trade under a fresh id, ``replace`` swaps the
            ledger contents for the imported trades.
        keep_active : bool, default True
            In ``replace`` mode, keep current active trades whose ids are not
            in the import.

        Returns
        -------
        ImportResult
            Counters; ``error`` is set when nothing was imported.
        """
        if mode not in IMPORT_MODES:
            raise ValueError(f"Unknown import mode '{mode}', expected one of {IMPORT_MODES}")

        try:
            data = parse_import_payload(payload)
            validate_import_data(data)
        except ImportValidationError as e:
            logger.error(f"Error importing trades: {e}")
            return ImportResult(errors=1, error=str(e))

        raw_trades = data['trades']
        result = ImportResult(total=len(raw_trades))
        now = self.clock()

        prepared: List[LedgerTrade] = []
        for raw in raw_trades:
            try:
                prepared.append(prepare_trade(raw, now))
            except (TypeError, ValueError) as e:
                logger.error(f"Error processing imported trade: {e}")
                result.errors += 1

        with self._transaction() as snapshot:
            if mode == 'replace':
                current_active = [t for t in self._trades if t.is_active] if keep_active else []
                imported_ids = {t.id for t in prepared}
                merged = list(prepared)
                for trade in current_active:
                    if trade.id not in imported_ids:
                        merged.append(trade)
                        result.kept += 1
                self._trades = merged
                result.added = len(prepared)
            elif mode == 'add':
                for trade in prepared:
                    trade.id = self._new_trade_id(now)
                    self._trades.append(trade)
                    result.added += 1
            else:
                index_by_id = {t.id: i for i, t in enumerate(self._trades)}
                for trade in prepared:
                    if trade.id and trade.id in index_by_id:
                        self._trades[index_by_id[trade.id]] = trade
                        result.updated += 1
                    else:
                        if not trade.id:
                            trade.id = self._new_trade_id(now)
                        index_by_id[trade.id] = len(self._trades)
                        self._trades.append(trade)
                        result.added += 1

            self._trades = _sort_for_storage(self._trades)
            if not self._commit(snapshot):
                return ImportResult(errors=1, error="Failed to save imported trades to storage")

        logger.info(
            f"Import successful: added {result.added}, updated {result.updated}"
            + (f", kept {result.kept}" if result.kept else "")
            + (f", errors {result.errors}" if result.errors else "")
        )
        self._emit(TRADES_IMPORTED, mode=mode, result=result.to_dict())
        return result
