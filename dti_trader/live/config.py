# -*- coding: utf-8 -*-
"""
Trade journal configuration schema.

Defines the operational parameters of the live trade journal: storage,
price refresh cadence, retries, analytics and logging.
"""

import os
from dataclasses import dataclass

from dti_trader.config import Config


@dataclass
class JournalConfig:
    """Configuration for the trade journal."""

    # Storage
    trades_file: str = "trades.json"

    # Price Refresh
    price_feed: str = "alphavantage"  # "alphavantage" or "binance"
    refresh_interval_seconds: float = 60.0  # Seconds between price refreshes
    max_retries: int = 3  # Retries per symbol and refresh
    retry_base_delay: float = 1.0  # Seconds; doubles each retry
    max_workers: int = 8  # Concurrent price fetches

    # Analytics
    risk_free_rate: float = 0.02  # Annual, used by the Sharpe ratio

    # Notifications
    enable_telegram: bool = True  # Only effective when bot token and chat id are set

    # Logging
    log_level: str = "INFO"
    log_file: str = "trade_journal.log"

    # Dashboard
    enable_dashboard: bool = False

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            'trades_file': self.trades_file,
            'price_feed': self.price_feed,
            'refresh_interval_seconds': self.refresh_interval_seconds,
            'max_retries': self.max_retries,
            'retry_base_delay': self.retry_base_delay,
            'max_workers': self.max_workers,
            'risk_free_rate': self.risk_free_rate,
            'enable_telegram': self.enable_telegram,
            'log_level': self.log_level,
            'log_file': self.log_file,
            'enable_dashboard': self.enable_dashboard
        }

    @classmethod
    def from_env(cls, base: Config = None) -> 'JournalConfig':
        """
        Build a config from environment variables.

        Storage file and price feed default to the values of ``Config``.
        """
        base = base or Config()
        config = cls(trades_file=base.trades_file, price_feed=base.price_feed)

        if os.getenv("PRICE_UPDATE_INTERVAL"):
            config.refresh_interval_seconds = float(os.getenv("PRICE_UPDATE_INTERVAL"))
        if os.getenv("PRICE_MAX_RETRIES"):
            config.max_retries = int(os.getenv("PRICE_MAX_RETRIES"))
        if os.getenv("RISK_FREE_RATE"):
            config.risk_free_rate = float(os.getenv("RISK_FREE_RATE"))
        config.log_level = os.getenv("LOG_LEVEL", config.log_level)
        config.log_file = os.getenv("LOG_FILE", config.log_file)
        return config
