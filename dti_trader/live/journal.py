# -*- coding: utf-8 -*-
"""
Trade journal orchestrator.

Wires the trade ledger to its store, price feed, notifier and analytics,
and runs the periodic price refresh loop.
"""

import logging
import threading
from typing import Optional

from binance.client import Client

from dti_trader.analytics.analyzer import PerformanceAnalyzer
from dti_trader.config import Config
from dti_trader.live.config import JournalConfig
from dti_trader.live.ledger import RefreshReport, TradeLedger
from dti_trader.live.notifier import TelegramNotifier
from dti_trader.live.price_feed import (
    AlphaVantagePriceFeed,
    BinancePriceFeed,
    PriceFeed,
    RetryingPriceFeed
)
from dti_trader.live.store import JsonTradeStore, TradeStore


logger = logging.getLogger(__name__)


def build_price_feed(config: JournalConfig, credentials: Config) -> PriceFeed:
    """
    Create the configured price feed wrapped with retry/backoff.

    Raises
    ------
    ValueError
        If the feed name is unknown.
    """
    if config.price_feed == "binance":
        client = Client(credentials.binance_api_key or None, credentials.binance_api_secret or None,
                        testnet=credentials.binance_testnet)
        inner = BinancePriceFeed(client)
    elif config.price_feed == "alphavantage":
        if not credentials.alpha_vantage_api_key:
            logger.warning("ALPHA_VANTAGE_API_KEY is not set, price requests will be rejected")
        inner = AlphaVantagePriceFeed(credentials.alpha_vantage_api_key)
    else:
        raise ValueError(f"Unknown price feed '{config.price_feed}'")

    return RetryingPriceFeed(inner, max_retries=config.max_retries, base_delay=config.retry_base_delay)


class TradeJournal:
    """Runs the ledger with periodic price refreshes."""

    def __init__(self, config: JournalConfig, credentials: Optional[Config] = None,
                 store: Optional[TradeStore] = None, price_feed: Optional[PriceFeed] = None,
                 setup_logging: bool = True):
        """
        Initialize trade journal.

        Parameters
        ----------
        config : JournalConfig
            Journal configuration.
        credentials : Config, optional
            API keys and tokens. Loaded from the environment if omitted.
        store : TradeStore, optional
            Overrides the JSON file store.
        price_feed : PriceFeed, optional
            Overrides the configured price feed.
        setup_logging : bool, default True
            Install file and console log handlers.
        """
        self.config = config
        self.credentials = credentials or Config()

        if setup_logging:
            self._setup_logging()

        self.store = store or JsonTradeStore(config.trades_file)
        self.price_feed = price_feed
        self.ledger = TradeLedger(self.store, price_feed=price_feed, max_workers=config.max_workers)
        self.analyzer = PerformanceAnalyzer(self.ledger, risk_free_rate=config.risk_free_rate)

        self.notifier = None
        if config.enable_telegram and self.credentials.telegram_enabled:
            self.notifier = TelegramNotifier(
                self.ledger,
                self.credentials.telegram_bot_token,
                self.credentials.telegram_chat_id
            )
            self.notifier.attach()
            logger.info("Telegram notifications enabled")

        self.dashboard = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def _setup_logging(self):
        """Setup logging configuration."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        package_logger = logging.getLogger("dti_trader")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handlers = [logging.StreamHandler()]
        if self.config.log_file:
            handlers.append(logging.FileHandler(self.config.log_file))
        for handler in handlers:
            handler.setLevel(log_level)
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)

    def _ensure_price_feed(self) -> PriceFeed:
        if self.price_feed is None:
            self.price_feed = build_price_feed(self.config, self.credentials)
            self.ledger.price_feed = self.price_feed
        return self.price_feed

    def refresh_once(self) -> RefreshReport:
        """
        Run one refresh cycle.

        Prices are fetched without holding the journal lock so user
        mutations are not blocked by slow requests. Results are applied
        under the lock to trades that are still active.
        """
        feed = self._ensure_price_feed()
        with self._lock:
            symbols = self.ledger.active_symbols()
        if not symbols:
            logger.debug("No active trades to refresh")
            return RefreshReport()

        fetched = self.ledger.fetch_prices(symbols, feed)
        with self._lock:
            report = self.ledger.apply_prices(fetched)

        logger.info(
            f"Prices updated ({len(report.updated)}/{len(symbols)})"
            + (f", {len(report.failed)} failed" if report.failed else "")
        )
        return report

    def mutate(self, operation, *args, **kwargs):
        """Run a ledger operation under the journal lock."""
        with self._lock:
            return operation(*args, **kwargs)

    def start(self):
        """Refresh prices every ``refresh_interval_seconds`` until stopped."""
        logger.info(f"Starting trade journal (refresh every {self.config.refresh_interval_seconds:.0f}s)")

        if self.config.enable_dashboard:
            from dti_trader.live.dashboard import JournalDashboard
            self.dashboard = JournalDashboard(self.ledger, self.analyzer)
            self.dashboard.start()

        self._stop_event.clear()
        try:
            while not self._stop_event.is_set():
                try:
                    self.refresh_once()
                except Exception as e:
                    logger.error(f"Error in refresh loop: {e}", exc_info=True)
                self._stop_event.wait(self.config.refresh_interval_seconds)
        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping...")
        finally:
            self.stop()

    def stop(self):
        """Stop the refresh loop."""
        self._stop_event.set()
        if self.dashboard:
            self.dashboard.stop()
            self.dashboard = None
        logger.info("Trade journal stopped")
