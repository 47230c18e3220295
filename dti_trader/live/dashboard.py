# -*- coding: utf-8 -*-
"""
Trade journal terminal dashboard.

Renders active trades, recent closed trades and headline metrics with rich.
Can print a one-off summary or run a live-updating screen.
"""

import logging
import math
import threading
import time
from typing import Optional

from rich import box
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from dti_trader.analytics.analyzer import PerformanceAnalyzer
from dti_trader.live.ledger import TradeLedger


logger = logging.getLogger(__name__)


RECENT_TRADES = 10


def _signed(value: float, fmt: str = "{:+.2f}") -> str:
    color = "green" if value >= 0 else "red"
    return f"[{color}]{fmt.format(value)}[/{color}]"


def active_trades_table(ledger: TradeLedger) -> Table:
    table = Table(title="Active Trades", box=box.ROUNDED)
    table.add_column("Symbol", style="cyan")
    table.add_column("Entry", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Stop", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Days", justify="right")
    table.add_column("P/L %", justify="right")
    table.add_column("P/L", justify="right")

    trades = ledger.active_trades
    if not trades:
        table.add_row("No active trades", "", "", "", "", "", "", "")
    for t in trades:
        cur = t.currency_symbol
        table.add_row(
            t.symbol,
            f"{cur}{t.entry_price:,.2f}",
            f"{cur}{(t.current_price or t.entry_price):,.2f}",
            f"{cur}{t.stop_loss_price:,.2f}" if t.stop_loss_price is not None else "-",
            f"{cur}{t.target_price:,.2f}" if t.target_price is not None else "-",
            str(t.holding_days),
            _signed(t.current_pl_percent, "{:+.2f}%"),
            _signed(t.current_pl_value, cur + "{:,.2f}")
        )
    return table


def closed_trades_table(ledger: TradeLedger, limit: int = RECENT_TRADES) -> Table:
    table = Table(title="Recent Closed Trades", box=box.ROUNDED)
    table.add_column("Symbol", style="cyan")
    table.add_column("Exit Date")
    table.add_column("Reason", style="yellow")
    table.add_column("P/L %", justify="right")
    table.add_column("P/L", justify="right")

    trades = ledger.closed_trades[:limit]
    if not trades:
        table.add_row("No closed trades", "", "", "", "")
    for t in trades:
        table.add_row(
            t.symbol,
            f"{t.exit_date:%Y-%m-%d}" if t.exit_date else "-",
            t.exit_reason or "Unknown",
            _signed(t.pl_percent or 0.0, "{:+.2f}%"),
            _signed(t.pl_value or 0.0, t.currency_symbol + "{:,.2f}")
        )
    return table


def metrics_table(analyzer: PerformanceAnalyzer) -> Table:
    metrics = analyzer.advanced_metrics()
    stats = metrics.statistics
    profit_factor = "∞" if math.isinf(stats.profit_factor) else f"{stats.profit_factor:.2f}"

    table = Table(box=None, show_header=False)
    table.add_column(style="cyan", width=22)
    table.add_column(style="white", justify="right", width=14)
    table.add_row("Active / Closed:", f"{stats.total_active} / {stats.total_closed}")
    table.add_row("Invested:", f"{stats.total_invested:,.2f}")
    table.add_row("Open P/L:", _signed(stats.open_pl_percent, "{:+.2f}%"))
    table.add_row("Win Rate:", f"{stats.win_rate:.1f}%")
    table.add_row("Avg P/L:", _signed(stats.avg_profit, "{:+.2f}%"))
    table.add_row("Profit Factor:", profit_factor)
    table.add_row("Sharpe:", f"{metrics.sharpe_ratio:.2f}")
    table.add_row("Max Drawdown:", f"{metrics.max_drawdown:.2f}%")
    table.add_row("Expectancy:", _signed(metrics.expectancy, "{:+.2f}%"))
    table.add_row("Annualized:", _signed(metrics.annualized_return, "{:+.2f}%"))
    streak = metrics.streaks
    table.add_row("Current Streak:", f"{streak.current_type} x{streak.current_count}")
    return table


def print_summary(ledger: TradeLedger, analyzer: PerformanceAnalyzer,
                  console: Optional[Console] = None):
    """Print the ledger summary once."""
    console = console or Console()
    console.print(active_trades_table(ledger))
    console.print(closed_trades_table(ledger))
    console.print(Panel(metrics_table(analyzer), title="Performance", box=box.ROUNDED))


class JournalDashboard:
    """Live-updating terminal dashboard for the trade journal."""

    def __init__(self, ledger: TradeLedger, analyzer: PerformanceAnalyzer,
                 refresh_seconds: float = 1.0):
        self.ledger = ledger
        self.analyzer = analyzer
        self.refresh_seconds = refresh_seconds
        self.running = False
        self._update_thread = None

    def render(self) -> Layout:
        layout = Layout()
        layout.split_row(Layout(name="left", ratio=2), Layout(name="right", ratio=1))
        layout["left"].update(Group(active_trades_table(self.ledger), closed_trades_table(self.ledger)))
        layout["right"].update(Panel(metrics_table(self.analyzer), title="Performance", box=box.ROUNDED))
        return layout

    def start(self):
        """Start dashboard update loop."""
        if self.running:
            return
        self.running = True

        def update_loop():
            try:
                with Live(self.render(), refresh_per_second=4, screen=True) as live:
                    while self.running:
                        live.update(self.render())
                        time.sleep(self.refresh_seconds)
            except Exception as e:
                logger.error(f"Dashboard error: {e}", exc_info=True)

        self._update_thread = threading.Thread(target=update_loop, daemon=True)
        self._update_thread.start()
        logger.info("Dashboard started")

    def stop(self):
        """Stop dashboard."""
        self.running = False
        if self._update_thread:
            self._update_thread.join(timeout=2)
        logger.info("Dashboard stopped")
