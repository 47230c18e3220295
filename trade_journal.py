# -*- coding: utf-8 -*-
"""
Trade journal command line.

Opens, closes and refreshes real trades in the JSON ledger, imports and
exports the ledger and prints a performance summary. With ``--watch`` the
journal keeps refreshing prices until interrupted.
"""

import argparse
import json
import sys

from dti_trader.config import Config
from dti_trader.live import JournalConfig, TradeValidationError
from dti_trader.live.dashboard import print_summary
from dti_trader.live.journal import TradeJournal


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='DTI Trade Journal')
    parser.add_argument('--trades-file', type=str, default=None,
                        help='Ledger JSON file (default: TRADES_FILE env or trades.json)')
    parser.add_argument('--feed', type=str, choices=['alphavantage', 'binance'], default=None,
                        help='Price feed (default: PRICE_FEED env or alphavantage)')

    # Mutations
    parser.add_argument('--open', type=str, default=None, metavar='SYMBOL',
                        help='Open a trade for SYMBOL (requires --entry and --amount)')
    parser.add_argument('--entry', type=float, default=None, help='Entry price for --open')
    parser.add_argument('--amount', type=float, default=None, help='Investment amount for --open')
    parser.add_argument('--stop', type=float, default=None, help='Stop loss price for --open')
    parser.add_argument('--target', type=float, default=None, help='Target price for --open')
    parser.add_argument('--square-off', type=str, default=None, help='Square-off date for --open')
    parser.add_argument('--name', type=str, default=None, help='Display name for --open')
    parser.add_argument('--close', type=str, default=None, metavar='TRADE_ID',
                        help='Close a trade manually (requires --price)')
    parser.add_argument('--price', type=float, default=None, help='Exit price for --close')

    # Prices
    parser.add_argument('--refresh', action='store_true', help='Refresh prices once')
    parser.add_argument('--watch', action='store_true', help='Refresh prices until interrupted')
    parser.add_argument('--interval', type=float, default=None, help='Seconds between refreshes')
    parser.add_argument('--dashboard', action='store_true', help='Show live dashboard with --watch')

    # Import / export
    parser.add_argument('--export', type=str, default=None, metavar='FILE',
                        help='Export every trade to a JSON file')
    parser.add_argument('--csv', type=str, default=None, metavar='FILE',
                        help='Export closed trades to a CSV file')
    parser.add_argument('--import', dest='import_file', type=str, default=None, metavar='FILE',
                        help='Import trades from a JSON export')
    parser.add_argument('--mode', type=str, choices=['merge', 'add', 'replace'], default='merge',
                        help='Import mode (default: merge)')
    parser.add_argument('--no-keep-active', action='store_true',
                        help='With --mode replace, drop current active trades')

    parser.add_argument('--summary', action='store_true', help='Print trades and performance')

    args = parser.parse_args()

    credentials = Config()
    config = JournalConfig.from_env(credentials)
    if args.trades_file:
        config.trades_file = args.trades_file
    if args.feed:
        config.price_feed = args.feed
    if args.interval:
        config.refresh_interval_seconds = args.interval
    config.enable_dashboard = args.dashboard

    print("=" * 80)
    print("DTI TRADE JOURNAL")
    print("=" * 80)
    print(f"Ledger: {config.trades_file}")
    print(f"Price feed: {config.price_feed}")
    print("=" * 80)

    journal = TradeJournal(config, credentials)
    ledger = journal.ledger

    try:
        if args.import_file:
            with open(args.import_file, 'r', encoding='utf-8') as f:
                payload = f.read()
            result = journal.mutate(ledger.import_trades, payload, mode=args.mode,
                                    keep_active=not args.no_keep_active)
            print(f"\nImport: {json.dumps(result.to_dict())}")

        if args.open:
            if args.entry is None or args.amount is None:
                print("Error: --open requires --entry and --amount")
                sys.exit(1)
            trade_id = journal.mutate(
                ledger.create, args.open, args.entry, args.amount,
                stop_loss_price=args.stop, target_price=args.target,
                square_off_date=args.square_off, stock_name=args.name
            )
            print(f"\nOpened trade: {trade_id}" if trade_id else "\nFailed to save new trade")

        if args.close:
            if args.price is None:
                print("Error: --close requires --price")
                sys.exit(1)
            closed = journal.mutate(ledger.close, args.close, args.price)
            print(f"\nClosed trade {args.close}" if closed else f"\nCould not close trade {args.close}")

        if args.refresh:
            report = journal.refresh_once()
            print(f"\nRefreshed {len(report.updated)} symbol(s)")
            for symbol, error in report.failed.items():
                print(f"  {symbol}: {error}")
            for trade_id in report.closed:
                trade = ledger.get(trade_id)
                print(f"  Auto-closed {trade.symbol}: {trade.exit_reason} ({trade.pl_percent:+.2f}%)")

        if args.export:
            with open(args.export, 'w', encoding='utf-8') as f:
                json.dump(ledger.export(), f, indent=2, default=str, ensure_ascii=False)
            print(f"\nExported {len(ledger.trades)} trade(s) to {args.export}")

        if args.csv:
            with open(args.csv, 'w', encoding='utf-8', newline='') as f:
                f.write(ledger.export_history_csv())
            print(f"\nExported {len(ledger.closed_trades)} closed trade(s) to {args.csv}")

        if args.summary:
            print_summary(ledger, journal.analyzer)

        if args.watch:
            journal.start()
    except TradeValidationError as e:
        print(f"\nError: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nReceived interrupt signal, stopping...")
        journal.stop()
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
