# -*- coding: utf-8 -*-
"""
Telegram notifications for ledger events.

``TelegramNotifier`` subscribes to a ``TradeLedger`` and posts a short HTML
message when a trade is opened or closed.
"""

import logging
from typing import Optional

import requests

from dti_trader.live.ledger import LedgerEvent, TradeLedger, TRADE_CLOSED, TRADE_CREATED
from dti_trader.live.trade import LedgerTrade


logger = logging.getLogger(__name__)


TELEGRAM_API_URL = "https://api.telegram.org"


def format_trade_opened(trade: LedgerTrade) -> str:
    lines = [
        f"🟢 <b>Trade opened: {trade.stock_name}</b> ({trade.symbol})",
        f"Entry: {trade.currency_symbol}{trade.entry_price:,.2f} x {trade.shares:.4f}",
        f"Investment: {trade.currency_symbol}{trade.investment_amount:,.2f}"
    ]
    if trade.stop_loss_price is not None:
        lines.append(f"Stop loss: {trade.currency_symbol}{trade.stop_loss_price:,.2f}")
    if trade.target_price is not None:
        lines.append(f"Target: {trade.currency_symbol}{trade.target_price:,.2f}")
    if trade.square_off_date is not None:
        lines.append(f"Square-off: {trade.square_off_date:%Y-%m-%d}")
    return "\n".join(lines)


def format_trade_closed(trade: LedgerTrade) -> str:
    icon = "✅" if (trade.pl_percent or 0) >= 0 else "🔴"
    outcome = "profit" if (trade.pl_percent or 0) >= 0 else "loss"
    return "\n".join([
        f"{icon} <b>Trade closed: {trade.stock_name}</b> ({trade.exit_reason})",
        f"Exit: {trade.currency_symbol}{trade.exit_price:,.2f}",
        f"Result: {outcome} of {abs(trade.pl_percent):.2f}% "
        f"({trade.currency_symbol}{trade.pl_value:,.2f})"
    ])


class TelegramNotifier:
    """Ledger listener sending trade notifications to a Telegram chat."""

    def __init__(self, ledger: TradeLedger, bot_token: str, chat_id: str,
                 session: Optional[requests.Session] = None, timeout: float = 10):
        """
        Initialize notifier.

        Parameters
        ----------
        ledger : TradeLedger
            Ledger to look trades up in when events arrive.
        bot_token : str
            Telegram bot token (``number:alphanumeric``).
        chat_id : str
            Target chat id.
        session : requests.Session, optional
            HTTP session to reuse.
        timeout : float, optional
            Request timeout in seconds.
        """
        self.ledger = ledger
        self.bot_token = (bot_token or '').strip()
        self.chat_id = (chat_id or '').strip()
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id and ':' in self.bot_token)

    def attach(self):
        """Subscribe to the ledger."""
        self.ledger.subscribe(self)

    def send_message(self, message: str) -> bool:
        """
        Send a message to the configured chat.

        Returns
        -------
        bool
            True if Telegram accepted the message.
        """
        if not self.configured:
            logger.debug("Telegram bot token or chat ID not configured. Skipping notification.")
            return False

        url = f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage"
        try:
            response = self.session.post(
                url,
                json={
                    "chat_id": self.chat_id,
                    "text": message,
                    "parse_mode": "HTML"
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Telegram request failed: {e}")
            return False

        if response.status_code == 200:
            return True
        if response.status_code == 401:
            logger.error("Telegram 401 Unauthorized: invalid bot token")
        else:
            try:
                description = response.json().get('description', 'Unknown error')
            except ValueError:
                description = response.text
            logger.error(f"Telegram HTTP {response.status_code}: {description}")
        return False

    def __call__(self, event: LedgerEvent):
        if event.kind not in (TRADE_CREATED, TRADE_CLOSED) or event.trade_id is None:
            return
        trade = self.ledger.get(event.trade_id)
        if trade is None:
            return
        if event.kind == TRADE_CREATED:
            self.send_message(format_trade_opened(trade))
        else:
            self.send_message(format_trade_closed(trade))
