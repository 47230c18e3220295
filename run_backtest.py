# -*- coding: utf-8 -*-
"""
Backtest script for the DTI strategy.

Loads daily OHLC candles from CSV files, computes the DTI oscillator and
either runs a single backtest, grid-searches the strategy parameters or
scans several symbols for open signals. Prints a report for the run.
"""

import argparse
import logging
import math
import os
import sys

import pandas as pd

from dti_trader.backtesting import (
    BacktestEngine,
    BacktestInputError,
    BacktestMetrics,
    BacktestParams,
    ParameterOptimizer,
    ParameterRanges,
    PriceSeries,
    SignalScanner,
    compute_backtest_metrics
)
from dti_trader.signals import DTIIndicatorFeed


# ============================================================================
# Data Loading
# ============================================================================

BINANCE_COLS = [
    "open_time", "open", "high", "low", "close", "volume",
    "close_time", "quote_volume", "trades", "taker_buy_base",
    "taker_buy_quote", "ignore",
]


def parse_timestamp(value):
    """Parse an epoch (s/ms/us/ns) or a datetime string to a naive UTC timestamp."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        ts = pd.to_datetime(value, errors='coerce', utc=True)
    else:
        if number > 1e17:
            unit = "ns"
        elif number > 1e14:
            unit = "us"
        elif number > 1e11:
            unit = "ms"
        else:
            unit = "s"
        ts = pd.to_datetime(number, unit=unit, utc=True)
    return ts.tz_convert(None) if pd.notna(ts) else ts


def load_ohlc_csv(path: str) -> pd.DataFrame:
    """
    Load daily OHLC candles.

    Accepts either a headerless Binance klines export or a CSV with a header
    row containing a date/open time column plus high, low and close.
    """
    with open(path, 'r') as f:
        first_col = f.readline().split(',')[0].strip()

    try:
        float(first_col)
        has_header = False
    except ValueError:
        has_header = True

    if has_header:
        df = pd.read_csv(path)
        col_mapping = {}
        for col in df.columns:
            col_lower = col.lower().strip()
            if col_lower in ('date', 'datetime', 'timestamp', 'time') or 'open time' in col_lower \
                    or 'open_time' in col_lower:
                col_mapping[col] = 'open_time'
            elif col_lower in ('open', 'high', 'low', 'close', 'volume'):
                col_mapping[col] = col_lower
        df = df.rename(columns=col_mapping)
    else:
        df = pd.read_csv(path, header=None, names=BINANCE_COLS)

    required_cols = ["open_time", "high", "low", "close"]
    missing_cols = [col for col in required_cols if col not in df.columns]
    if missing_cols:
        raise ValueError(f"CSV file missing required columns: {missing_cols}. Found columns: {list(df.columns)}")

    df[["high", "low", "close"]] = df[["high", "low", "close"]].astype(float)
    df["datetime"] = df["open_time"].apply(parse_timestamp)

    df = (
        df
        .dropna(subset=["datetime"])
        .drop_duplicates(subset=["datetime"])
        .sort_values("datetime")
        .set_index("datetime")
    )
    return df[["high", "low", "close"]]


def symbol_from_path(path: str) -> str:
    """Symbol named by a CSV file, e.g. ``data/btcusdt.csv`` -> ``BTCUSDT``."""
    return os.path.splitext(os.path.basename(path))[0].upper()


# ============================================================================
# Reporting
# ============================================================================

SIGNAL_BUCKET_TITLES = {
    'last_7_days': "Signals from Last 7 Days",
    '7_14_days': "Signals from 7-14 Days Ago",
    '14_28_days': "Signals from 14-28 Days Ago",
}


def _format_factor(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}"


def print_performance_report(metrics: BacktestMetrics, params: BacktestParams, open_trade=None):
    """Print the backtest performance report."""
    print("\n" + "=" * 80)
    print("PERFORMANCE REPORT")
    print("=" * 80)

    print("\n1. PARAMETERS")
    print("-" * 80)
    for key, value in params.to_dict().items():
        print(f"  {key}: {value}")

    print("\n2. SIMULATION SUMMARY")
    print("-" * 80)
    print(f"  Completed Trades: {metrics.total_trades}")
    if open_trade is not None:
        print(f"  Open Trade: entered {open_trade.entry_date:%Y-%m-%d} @ {open_trade.entry_price:.4f} "
              f"({open_trade.current_pl_percent:+.2f}%, {open_trade.holding_days}d)")
    print(f"  Total Return (sum): {metrics.total_return:.2f}%")
    print(f"  Final Equity (start 100): {metrics.equity_curve[-1]:.2f}")

    if metrics.total_trades == 0:
        print("\n  No trades completed. Cannot compute performance metrics.")
        print("\n" + "=" * 80)
        return

    print("\n3. OVERALL PERFORMANCE")
    print("-" * 80)
    print(f"  Win Rate: {metrics.win_rate:.2f}% ({metrics.winning_trades}W / {metrics.losing_trades}L)")
    print(f"  Average P/L per Trade: {metrics.avg_profit:.2f}%")
    print(f"  Profit Factor: {_format_factor(metrics.profit_factor)}")
    print(f"  Average Holding Period: {metrics.avg_holding_period:.1f} days")

    print("\n4. RISK METRICS")
    print("-" * 80)
    print(f"  Maximum Drawdown: {metrics.max_drawdown:.2f}%")

    print("\n5. EXIT REASONS")
    print("-" * 80)
    print(f"  Take Profit: {metrics.take_profit_count}")
    print(f"  Stop Loss: {metrics.stop_loss_count}")
    print(f"  Time Exit: {metrics.time_exit_count}")

    print("\n" + "=" * 80)


def print_optimization_report(result, top: int = 10):
    """Print the best combination and the top-ranked rows of the grid."""
    print("\n" + "=" * 80)
    print("OPTIMIZATION RESULTS")
    print("=" * 80)

    frame = result.to_frame()
    if frame.empty:
        print("\n  No combinations evaluated.")
        return

    columns = ['r', 's', 'u', 'entry_threshold', 'take_profit_percent', 'stop_loss_percent',
               'max_holding_days', 'total_trades', 'win_rate', 'avg_profit', 'score']
    print(f"\nTop {min(top, len(frame))} of {len(frame)} combinations:")
    print(frame[columns].head(top).to_string(index=False, float_format=lambda v: f"{v:.2f}"))

    if result.best is None:
        print("\n  No combination produced enough completed trades to qualify as best.")
        return

    print_performance_report(result.best.metrics, result.best.params)


def print_scan_report(result):
    """Print open signals grouped by age, newest first."""
    print("\n" + "=" * 80)
    print("SIGNAL SCAN")
    print("=" * 80)
    print(f"\nScanned {result.scanned} symbol(s) as of {result.as_of:%Y-%m-%d}: "
          f"{len(result.signals)} open signal(s)")

    for key, signals in result.buckets().items():
        print(f"\n{SIGNAL_BUCKET_TITLES[key]}")
        print("-" * 80)
        if not signals:
            print("  No signals")
            continue
        for signal in signals:
            trade = signal.trade
            print(f"  {signal.symbol:<12} {signal.signal_date:%Y-%m-%d}  entry {trade.entry_price:.4f}  "
                  f"now {trade.current_price:.4f} ({trade.current_pl_percent:+.2f}%)  "
                  f"DTI {trade.entry_oscillator:.2f}")

    if result.failed:
        print("\nFailed")
        print("-" * 80)
        for symbol, error in result.failed.items():
            print(f"  {symbol}: {error}")

    print("\n" + "=" * 80)


# ============================================================================
# Main Execution
# ============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='DTI strategy backtest')
    parser.add_argument('csv_paths', nargs='+', metavar='csv_path',
                        help='Daily OHLC CSV file(s). A scan takes one file per symbol')
    parser.add_argument('--optimize', action='store_true',
                        help='Grid-search parameters instead of a single run')
    parser.add_argument('--scan', action='store_true',
                        help='Report the open signals of every CSV file, grouped by age')
    parser.add_argument('--r', type=int, default=14, help='First smoothing period')
    parser.add_argument('--s', type=int, default=10, help='Second smoothing period')
    parser.add_argument('--u', type=int, default=5, help='Third smoothing period')
    parser.add_argument('--entry-threshold', type=float, default=-40.0,
                        help='Enter when the DTI is below this value and rising')
    parser.add_argument('--take-profit', type=float, default=8.0, help='Take profit percent')
    parser.add_argument('--stop-loss', type=float, default=5.0, help='Stop loss percent')
    parser.add_argument('--max-days', type=int, default=30, help='Maximum holding days')
    parser.add_argument('--no-weekly-filter', action='store_true',
                        help='Disable the rising weekly DTI filter')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads for the optimizer and the scanner')
    parser.add_argument('--top', type=int, default=10, help='Rows of the optimizer ranking to print')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    for path in args.csv_paths:
        if not os.path.exists(path):
            print(f"Error: Could not find {path}")
            sys.exit(1)

    params = BacktestParams(
        r=args.r, s=args.s, u=args.u,
        entry_threshold=args.entry_threshold,
        use_weekly_filter=not args.no_weekly_filter,
        take_profit_percent=args.take_profit,
        stop_loss_percent=args.stop_loss,
        max_holding_days=args.max_days
    )
    feed = DTIIndicatorFeed()

    if args.scan:
        print("=" * 80)
        print("DTI SIGNAL SCAN")
        print("=" * 80)

        print("\nLoading data...")
        universe = {}
        for path in args.csv_paths:
            universe[symbol_from_path(path)] = load_ohlc_csv(path)
        print(f"Loaded {len(universe)} symbol(s)")

        scanner = SignalScanner(feed, params, max_workers=args.workers)
        print_scan_report(scanner.scan(universe))
        return

    if len(args.csv_paths) > 1:
        print(f"Using {args.csv_paths[0]}; extra files are only read with --scan")

    print("=" * 80)
    print("DTI BACKTEST")
    print("=" * 80)

    print("\nLoading data...")
    df = load_ohlc_csv(args.csv_paths[0])
    if df.empty:
        print("Error: no candles loaded")
        sys.exit(1)
    print(f"Loaded {len(df)} candles from {df.index[0]} to {df.index[-1]}")

    dates = list(df.index)
    highs = df["high"].tolist()
    lows = df["low"].tolist()
    closes = df["close"].tolist()

    try:
        if args.optimize:
            ranges = ParameterRanges(use_weekly_filter=not args.no_weekly_filter)
            print(f"Optimizing over {ranges.size()} combinations...")
            optimizer = ParameterOptimizer(feed, max_workers=args.workers)
            result = optimizer.optimize(dates, highs, lows, closes, ranges)
            print_optimization_report(result, top=args.top)
        else:
            print("Calculating DTI...")
            daily = feed.compute_oscillator(highs, lows, params.r, params.s, params.u)
            weekly = feed.compute_weekly_oscillator(dates, highs, lows, params.r, params.s, params.u)
            series = PriceSeries.from_sequences(dates, closes, daily, weekly)

            result = BacktestEngine(params).run(series)
            print(f"Warm-up until {result.warmup.end_date:%Y-%m-%d}")
            metrics = compute_backtest_metrics(result.completed_trades)
            print_performance_report(metrics, params, result.active_trade)
    except BacktestInputError as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
