"""
Arbitrage decision engine and its guarded configuration.
"""

from arbitrator.engine.arbitrage_engine import ArbitrageEngine
from arbitrator.engine.config_state import ConfigState, ReadWriteLock

__all__ = [
    "ArbitrageEngine",
    "ConfigState",
    "ReadWriteLock",
]
