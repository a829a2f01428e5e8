"""
Data models for the DEX Arbitrator.
Defines the core data structures shared by venues, the engine and the CLI.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class LiquidityStatus(Enum):
    """Coarse classification of a pool's depth at quote time."""
    HIGH = "high"
    LOW = "low"


class Side(Enum):
    """Trading side."""
    BUY = "buy"
    SELL = "sell"


class EngineStatus(Enum):
    """Lifecycle of a running arbitrage engine."""
    AWAITING_BOTH_PRICES = "awaiting_both_prices"
    EVALUATING = "evaluating"
    STOPPED = "stopped"


class DecisionAction(Enum):
    """What the engine decided to do with the current pair of prices."""
    NONE = "none"
    ARBITRAGE = "arbitrage"


@dataclass(frozen=True)
class PriceQuote:
    """A normalized price observed on one venue."""
    venue_name: str
    symbol: str
    price: Decimal
    liquidity: int
    liquidity_status: LiquidityStatus = LiquidityStatus.HIGH
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class PoolConfig:
    """
    Static description of a pool.

    Price is always quote-per-base; for V3 pools the base token is token0
    and the quote token is token1.
    """
    base_token: str
    quote_token: str
    base_decimals: int
    quote_decimals: int
    address: str = ""
    test_address: str = ""
    base_token_contract: str = ""
    quote_token_contract: str = ""
    fee_tier: int = 3000

    @property
    def symbol(self) -> str:
        return f"{self.base_token}/{self.quote_token}"

    def address_for(self, network: str) -> str:
        """Pool address on the given network ("mainnet" or "testnet")."""
        if network == "testnet":
            return self.test_address
        return self.address


@dataclass(frozen=True)
class SwapEvent:
    """Raw swap event emitted by a pool, before normalization."""
    sqrt_price_x96: int
    liquidity: int
    tick: int = 0
    transaction_hash: str = ""
    block_number: int = 0


@dataclass(frozen=True)
class OrderConfig:
    """
    Trading parameters read by the engine before every evaluation.

    notional_amount, profit_threshold and fixed_execution_cost are all
    expressed in the quote currency.
    """
    notional_amount: Decimal
    profit_threshold: Decimal
    slippage_buffer: Decimal
    fixed_execution_cost: Decimal
    active_symbol: str

    def validation_errors(self) -> List[str]:
        errors = []
        amounts = {
            "notional_amount": self.notional_amount,
            "profit_threshold": self.profit_threshold,
            "slippage_buffer": self.slippage_buffer,
            "fixed_execution_cost": self.fixed_execution_cost,
        }
        for name, value in amounts.items():
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, Decimal))
                or not Decimal(value).is_finite()
            ):
                errors.append(f"{name} must be a finite decimal, got {value!r}")
        if errors:
            return errors

        if self.notional_amount <= 0:
            errors.append("notional_amount must be greater than zero")
        if self.profit_threshold <= 0:
            errors.append("profit_threshold must be greater than zero")
        return errors

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors()


@dataclass(frozen=True)
class ProfitEvaluation:
    """Result of the round-trip net profit simulation."""
    buy_price: Decimal
    sell_price: Decimal
    buy_fee: Decimal
    sell_fee: Decimal
    notional_amount: Decimal
    fixed_execution_cost: Decimal
    net_quote_spent: Decimal
    base_acquired: Decimal
    net_base_sold: Decimal
    quote_returned: Decimal
    profit: Decimal
    profit_threshold: Decimal

    @property
    def is_profitable(self) -> bool:
        return self.profit >= self.profit_threshold


@dataclass(frozen=True)
class Decision:
    """Directional trade decision produced by the engine."""
    action: DecisionAction
    buy_venue: Optional[str] = None
    sell_venue: Optional[str] = None
    buy_price: Optional[Decimal] = None
    sell_price: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    symbol: Optional[str] = None
    evaluation: Optional[ProfitEvaluation] = None

    @classmethod
    def none(cls, evaluation: Optional[ProfitEvaluation] = None) -> "Decision":
        return cls(action=DecisionAction.NONE, evaluation=evaluation)

    @property
    def is_actionable(self) -> bool:
        return self.action == DecisionAction.ARBITRAGE


@dataclass
class TradeResult:
    """Outcome of a single buy or sell invocation against a venue."""
    venue: str
    side: Side
    amount: Decimal
    symbol: str
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    latency_ms: float = 0.0
    submitted_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.transaction_id is not None
