"""
Guarded, validated trading parameters.

The engine reads a consistent OrderConfig snapshot before every evaluation;
updates go through set_config() only and are rejected when invalid.
"""

import threading
from contextlib import contextmanager
from typing import Iterator

from arbitrator.exceptions import ConfigurationError
from arbitrator.logger import get_logger
from arbitrator.models import OrderConfig


logger = get_logger("config_state")


class ReadWriteLock:
    """Many concurrent readers or a single writer. Writers are not starved."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ConfigState:
    """Holder of the active OrderConfig."""

    def __init__(self, initial: OrderConfig):
        errors = initial.validation_errors()
        if errors:
            raise ConfigurationError(f"Invalid initial order config: {'; '.join(errors)}")

        self._lock = ReadWriteLock()
        self._config = initial

    def set_config(self, new_config: OrderConfig) -> bool:
        """
        Replace the active configuration.

        An invalid config is logged and dropped; the previous one stays
        in effect. Returns True if the update was applied.
        """
        try:
            errors = new_config.validation_errors()
        except (AttributeError, TypeError, ArithmeticError) as e:
            errors = [f"malformed config: {e}"]

        if errors:
            logger.error(
                "Rejected order config update",
                errors=errors,
                notional_amount=getattr(new_config, "notional_amount", None),
                profit_threshold=getattr(new_config, "profit_threshold", None),
            )
            return False

        with self._lock.write_locked():
            previous = self._config
            self._config = new_config

        logger.info(
            "Order config updated",
            symbol=new_config.active_symbol,
            notional_amount=new_config.notional_amount,
            profit_threshold=new_config.profit_threshold,
            slippage_buffer=new_config.slippage_buffer,
            fixed_execution_cost=new_config.fixed_execution_cost,
            previous_symbol=previous.active_symbol,
        )
        return True

    def current_config(self) -> OrderConfig:
        """Snapshot of the active configuration."""
        with self._lock.read_locked():
            return self._config
