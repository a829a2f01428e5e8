"""
Structured logging configuration for the DEX Arbitrator.
Uses structlog for rich, structured logging output.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

from arbitrator.config import get_config
from arbitrator.models import Decision, ProfitEvaluation, PriceQuote


# Rich console for pretty output
console = Console()


def add_timestamp(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO timestamp to log events."""
    event_dict["timestamp"] = datetime.utcnow().isoformat()
    return event_dict


def add_component(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Ensure component is present in log events."""
    if "component" not in event_dict:
        event_dict["component"] = "main"
    return event_dict


def decimals_to_str(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Render Decimal values as plain strings so JSON output keeps precision."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = format(value, "f")
    return event_dict


def setup_logging() -> None:
    """Configure structured logging for the application."""
    config = get_config()
    log_level = getattr(logging, config.monitoring.log_level.upper(), logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_time=True,
                show_path=False,
            )
        ],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    # Configure structlog
    processors = [
        structlog.stdlib.filter_by_level,
        add_timestamp,
        add_component,
        decimals_to_str,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.development.debug_mode:
        # Pretty console output for development
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        # JSON output for production
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to a specific component."""
    return structlog.get_logger().bind(component=component)


class TradeLogger:
    """Specialized logger for evaluation and trade activity."""

    def __init__(self):
        self.logger = get_logger("trades")

    def log_profit_evaluation(self, evaluation: ProfitEvaluation) -> None:
        """Log every net-profit simulation with enough detail to replay it."""
        self.logger.info(
            "profit_evaluation",
            buy_price=evaluation.buy_price,
            sell_price=evaluation.sell_price,
            notional_amount=evaluation.notional_amount,
            net_quote_spent=evaluation.net_quote_spent,
            base_acquired=evaluation.base_acquired,
            net_base_sold=evaluation.net_base_sold,
            quote_returned=evaluation.quote_returned,
            buy_fee=evaluation.buy_fee,
            sell_fee=evaluation.sell_fee,
            fixed_execution_cost=evaluation.fixed_execution_cost,
            profit=evaluation.profit,
            profit_threshold=evaluation.profit_threshold,
            profitable=evaluation.is_profitable,
        )

    def log_decision(self, decision: Decision) -> None:
        """Log an actionable arbitrage decision."""
        self.logger.info(
            "🎯 arbitrage_decision",
            symbol=decision.symbol,
            buy_venue=decision.buy_venue,
            sell_venue=decision.sell_venue,
            buy_price=decision.buy_price,
            sell_price=decision.sell_price,
            amount=decision.amount,
            expected_profit=decision.evaluation.profit if decision.evaluation else None,
        )

    def log_trade_submitted(
        self,
        venue: str,
        side: str,
        symbol: str,
        amount: Decimal,
        transaction_id: str,
        latency_ms: float,
    ) -> None:
        """Log a swap that was handed to the venue."""
        self.logger.info(
            "trade_submitted",
            venue=venue,
            side=side,
            symbol=symbol,
            amount=amount,
            transaction_id=transaction_id,
            latency_ms=f"{latency_ms:.1f}",
        )

    def log_trade_failed(
        self,
        venue: str,
        side: str,
        symbol: str,
        amount: Decimal,
        error: str,
    ) -> None:
        """Log a swap the venue rejected. It is not retried."""
        self.logger.error(
            "🔴 trade_failed",
            venue=venue,
            side=side,
            symbol=symbol,
            amount=amount,
            error=error,
        )


class StreamLogger:
    """Specialized logger for venue price streams."""

    def __init__(self):
        self.logger = get_logger("streams")

    def log_subscribed(self, venue: str, symbol: str, pool_address: str) -> None:
        self.logger.info(
            "📡 subscribed",
            venue=venue,
            symbol=symbol,
            pool=pool_address,
        )

    def log_quote(self, quote: PriceQuote) -> None:
        self.logger.debug(
            "quote_received",
            venue=quote.venue_name,
            symbol=quote.symbol,
            price=quote.price,
            liquidity=str(quote.liquidity),
            liquidity_status=quote.liquidity_status.value,
        )

    def log_stream_error(self, venue: str, symbol: str, error: str) -> None:
        self.logger.error(
            "stream_error",
            venue=venue,
            symbol=symbol,
            error=error,
        )

    def log_reconnecting(
        self, venue: str, symbol: str, attempt: int, delay: float
    ) -> None:
        self.logger.warning(
            "stream_reconnecting",
            venue=venue,
            symbol=symbol,
            attempt=attempt,
            delay=f"{delay:.1f}s",
        )

    def log_unsubscribed(
        self, venue: str, symbol: str, reason: Optional[str] = None
    ) -> None:
        self.logger.info(
            "unsubscribed",
            venue=venue,
            symbol=symbol,
            reason=reason,
        )


# Global logger instances
trade_logger = TradeLogger()
stream_logger = StreamLogger()
