# -*- coding: utf-8 -*-
"""
Backtesting configuration schema.

Defines the strategy parameters consumed by the DTI backtest engine and
enumerated by the parameter optimizer.
"""

import math
from dataclasses import dataclass, fields
from typing import Any, Dict


WARMUP_MONTHS = 6  # No entries during the first six calendar months of data


@dataclass
class BacktestParams:
    """Strategy parameters for one backtest run."""

    # Oscillator smoothing periods (used by indicator feeds)
    r: int = 14
    s: int = 10
    u: int = 5

    # Entry
    entry_threshold: float = -40.0  # Oscillator must be below this to enter
    use_weekly_filter: bool = True  # Require rising weekly oscillator

    # Exit
    take_profit_percent: float = 8.0
    stop_loss_percent: float = 5.0
    max_holding_days: int = 30

    def validate(self):
        """
        Check that every parameter is usable.

        Raises
        ------
        ValueError
            If a value is non-finite or a period/threshold that must be
            positive is not.
        """
        for name in ('r', 's', 'u', 'entry_threshold', 'take_profit_percent',
                     'stop_loss_percent', 'max_holding_days'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Parameter '{name}' must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"Parameter '{name}' must be finite, got {value}")

        for name in ('r', 's', 'u', 'take_profit_percent', 'stop_loss_percent', 'max_holding_days'):
            if getattr(self, name) <= 0:
                raise ValueError(f"Parameter '{name}' must be positive, got {getattr(self, name)}")

    def to_dict(self) -> dict:
        """Convert params to dictionary."""
        return {
            'r': self.r,
            's': self.s,
            'u': self.u,
            'entry_threshold': self.entry_threshold,
            'use_weekly_filter': self.use_weekly_filter,
            'take_profit_percent': self.take_profit_percent,
            'stop_loss_percent': self.stop_loss_percent,
            'max_holding_days': self.max_holding_days
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BacktestParams':
        """Build params from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
