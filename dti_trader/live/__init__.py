# -*- coding: utf-8 -*-
"""
Live trade journal module.

Provides the trade ledger with automatic exit evaluation, persistence,
price feeds, import/export and notifications.
"""

from dti_trader.live.trade import LedgerTrade, STATUS_ACTIVE, STATUS_CLOSED, currency_symbol_for
from dti_trader.live.store import TradeStore, JsonTradeStore
from dti_trader.live.price_feed import (
    PriceFeed,
    PriceFeedError,
    TransientPriceFeedError,
    RateLimitError,
    PriceDataError,
    AlphaVantagePriceFeed,
    BinancePriceFeed,
    RetryingPriceFeed
)
from dti_trader.live.interchange import DATA_VERSION, ImportValidationError
from dti_trader.live.ledger import (
    TradeLedger,
    TradeValidationError,
    LedgerEvent,
    RefreshReport,
    ImportResult
)
from dti_trader.live.config import JournalConfig

__all__ = [
    'LedgerTrade',
    'STATUS_ACTIVE',
    'STATUS_CLOSED',
    'currency_symbol_for',
    'TradeStore',
    'JsonTradeStore',
    'PriceFeed',
    'PriceFeedError',
    'TransientPriceFeedError',
    'RateLimitError',
    'PriceDataError',
    'AlphaVantagePriceFeed',
    'BinancePriceFeed',
    'RetryingPriceFeed',
    'DATA_VERSION',
    'ImportValidationError',
    'TradeLedger',
    'TradeValidationError',
    'LedgerEvent',
    'RefreshReport',
    'ImportResult',
    'JournalConfig'
]
