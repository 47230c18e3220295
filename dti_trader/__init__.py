# -*- coding: utf-8 -*-
"""
DTI trade simulation and analytics engine.

Backtests the DTI oscillator strategy, tracks real trades in a persistent
ledger with automatic exits, and derives performance analytics.
"""

__version__ = "1.0.0"
