# -*- coding: utf-8 -*-
"""
Trade persistence.

The ledger is persisted as a whole: every save writes the complete list of
trades. ``JsonTradeStore`` keeps it in a single JSON file.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import List

from dti_trader.live.trade import LedgerTrade


logger = logging.getLogger(__name__)


class TradeStore(ABC):
    """Persistence backend for the trade ledger."""

    @abstractmethod
    def load(self) -> List[LedgerTrade]:
        """Return every persisted trade (empty list if nothing is stored)."""

    @abstractmethod
    def save(self, trades: List[LedgerTrade]) -> bool:
        """Persist the full trade list. Returns False on failure."""


class JsonTradeStore(TradeStore):
    """Stores trades as a JSON array in one file."""

    def __init__(self, filepath: str):
        """
        Initialize JSON store.

        Parameters
        ----------
        filepath : str
            Path of the trades file. Parent directories are created on save.
        """
        self.filepath = filepath

    def load(self) -> List[LedgerTrade]:
        if not os.path.exists(self.filepath):
            logger.debug(f"Trades file {self.filepath} does not exist")
            return []

        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading trades from {self.filepath}: {e}")
            return []

        if not isinstance(raw, list):
            logger.error(f"Trades file {self.filepath} does not contain a list")
            return []

        trades = []
        for item in raw:
            if not isinstance(item, dict):
                logger.warning(f"Skipping malformed trade entry in {self.filepath}: {item!r}")
                continue
            trades.append(LedgerTrade.from_dict(item))

        logger.info(f"Loaded {len(trades)} trade(s) from {self.filepath}")
        return trades

    def save(self, trades: List[LedgerTrade]) -> bool:
        directory = os.path.dirname(os.path.abspath(self.filepath))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump([t.to_dict() for t in trades], f, indent=2, default=str, ensure_ascii=False)
                os.replace(tmp_path, self.filepath)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving trades to {self.filepath}: {e}")
            return False

        logger.debug(f"Saved {len(trades)} trade(s) to {self.filepath}")
        return True
