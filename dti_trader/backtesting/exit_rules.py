# -*- coding: utf-8 -*-
"""
Exit rule evaluation shared by the backtest engine and the trade ledger.

Both callers build a map of exit conditions and pass the order in which they
must be checked. The first satisfied condition wins. The two callers use
different orders and labels, declared here side by side.
"""

from typing import Dict, Optional, Sequence, Tuple


TAKE_PROFIT = "take_profit"
STOP_LOSS = "stop_loss"
TIME_EXIT = "time"

# Backtest: take-profit is checked before stop-loss
BACKTEST_EXIT_PRIORITY: Tuple[str, ...] = (TAKE_PROFIT, STOP_LOSS, TIME_EXIT)
BACKTEST_EXIT_LABELS: Dict[str, str] = {
    TAKE_PROFIT: "Take Profit",
    STOP_LOSS: "Stop Loss",
    TIME_EXIT: "Time Exit"
}

# Live ledger: stop-loss is checked before target
LIVE_EXIT_PRIORITY: Tuple[str, ...] = (STOP_LOSS, TAKE_PROFIT, TIME_EXIT)
LIVE_EXIT_LABELS: Dict[str, str] = {
    STOP_LOSS: "Stop Loss Hit",
    TAKE_PROFIT: "Target Reached",
    TIME_EXIT: "Time Exit"
}

END_OF_DATA = "End of Data"


def evaluate_exit(conditions: Dict[str, bool], priority: Sequence[str],
                  labels: Optional[Dict[str, str]] = None) -> Optional[str]:
    """
    Return the first satisfied exit condition in priority order.

    Parameters
    ----------
    conditions : dict
        Condition key -> whether it currently holds. Missing keys count as
        not satisfied.
    priority : sequence of str
        Condition keys in evaluation order.
    labels : dict, optional
        Condition key -> exit reason label. If omitted the key is returned.

    Returns
    -------
    str or None
        Exit reason, or None if no condition holds.
    """
    for key in priority:
        if conditions.get(key):
            return labels.get(key, key) if labels else key
    return None


def backtest_exit_reason(pl_percent: float, holding_days: int, take_profit_percent: float,
                         stop_loss_percent: float, max_holding_days: int) -> Optional[str]:
    """Exit reason for a simulated trade, or None to keep holding."""
    conditions = {
        TAKE_PROFIT: pl_percent >= take_profit_percent,
        STOP_LOSS: pl_percent <= -stop_loss_percent,
        TIME_EXIT: holding_days >= max_holding_days
    }
    return evaluate_exit(conditions, BACKTEST_EXIT_PRIORITY, BACKTEST_EXIT_LABELS)


def live_exit_reason(current_price: float, stop_loss_price: Optional[float],
                     target_price: Optional[float], now, square_off_date) -> Optional[str]:
    """Exit reason for a real trade at the latest price, or None to keep holding."""
    conditions = {
        STOP_LOSS: stop_loss_price is not None and current_price <= stop_loss_price,
        TAKE_PROFIT: target_price is not None and current_price >= target_price,
        TIME_EXIT: square_off_date is not None and now >= square_off_date
    }
    return evaluate_exit(conditions, LIVE_EXIT_PRIORITY, LIVE_EXIT_LABELS)
