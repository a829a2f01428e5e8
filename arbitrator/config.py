"""
Configuration management for the DEX Arbitrator.
Uses Pydantic for validation and type safety.
"""

from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbitrator.models import OrderConfig


class ChainConfig(BaseSettings):
    """Blockchain node configuration."""

    active_chain: str = Field("BscMainnet", alias="ACTIVE_CHAIN")
    infura_api_key: str = Field("", alias="INFURA_API_KEY")
    # Overrides the websocket URL of the selected network when set
    rpc_ws_url: str = Field("", alias="RPC_WS_URL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class WalletConfig(BaseSettings):
    """Signing key configuration."""

    # Private key is optional for paper trading mode
    private_key: str = Field("", alias="WALLET_PRIVATE_KEY")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def is_configured(self) -> bool:
        """Check if a signing key is available for live trading."""
        return bool(self.private_key)


class TradingConfig(BaseSettings):
    """Default order parameters, all amounts in the quote currency."""

    active_symbol: str = Field("USDT/WBNB", alias="ACTIVE_SYMBOL")
    notional_amount: Decimal = Field(Decimal("0.003"), alias="NOTIONAL_AMOUNT")
    profit_threshold: Decimal = Field(Decimal("0.0001"), alias="PROFIT_THRESHOLD")
    slippage_buffer: Decimal = Field(Decimal("0.001"), alias="SLIPPAGE_BUFFER")
    fixed_execution_cost: Decimal = Field(Decimal("0.00005"), alias="FIXED_EXECUTION_COST")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("notional_amount", "profit_threshold")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Value must be greater than zero")
        return v

    @field_validator("slippage_buffer", "fixed_execution_cost")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    def to_order_config(self) -> OrderConfig:
        """Build the engine's order configuration from these defaults."""
        return OrderConfig(
            notional_amount=self.notional_amount,
            profit_threshold=self.profit_threshold,
            slippage_buffer=self.slippage_buffer,
            fixed_execution_cost=self.fixed_execution_cost,
            active_symbol=self.active_symbol,
        )


class VenueConfig(BaseSettings):
    """Per-venue fees, routers and static gas settings."""

    uniswap_fee_rate: Decimal = Field(Decimal("0.003"), alias="UNISWAP_FEE_RATE")
    pancakeswap_fee_rate: Decimal = Field(Decimal("0.0025"), alias="PANCAKESWAP_FEE_RATE")
    uniswap_router: str = Field(
        "0xB971eF87ede563556b2ED4b1C0b0019111Dd85d2", alias="UNISWAP_ROUTER"
    )
    pancakeswap_router: str = Field(
        "0x13f4EA83D0bd40E75C8222255bc855a974568Dd4", alias="PANCAKESWAP_ROUTER"
    )
    gas_fee_cap_gwei: int = Field(5, alias="GAS_FEE_CAP_GWEI")
    gas_tip_cap_gwei: int = Field(1, alias="GAS_TIP_CAP_GWEI")
    gas_limit: int = Field(300_000, alias="GAS_LIMIT")
    approval_gas_limit: int = Field(100_000, alias="APPROVAL_GAS_LIMIT")
    # Pools below this in-range liquidity are flagged as low
    low_liquidity_threshold: int = Field(10**10, alias="LOW_LIQUIDITY_THRESHOLD")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("uniswap_fee_rate", "pancakeswap_fee_rate")
    @classmethod
    def validate_fee(cls, v: Decimal) -> Decimal:
        if not Decimal(0) <= v < Decimal(1):
            raise ValueError("Fee rate must be between 0.0 and 1.0")
        return v


class StreamConfig(BaseSettings):
    """Price stream reconnection policy. Zero attempts disables reconnection."""

    reconnect_attempts: int = Field(0, alias="STREAM_RECONNECT_ATTEMPTS")
    reconnect_initial_delay: float = Field(1.0, alias="STREAM_RECONNECT_INITIAL_DELAY")
    reconnect_backoff: float = Field(2.0, alias="STREAM_RECONNECT_BACKOFF")
    reconnect_max_delay: float = Field(60.0, alias="STREAM_RECONNECT_MAX_DELAY")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class MonitoringConfig(BaseSettings):
    """Logging configuration."""

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class DevelopmentConfig(BaseSettings):
    """Development and testing configuration."""

    paper_trading: bool = Field(True, alias="PAPER_TRADING")
    debug_mode: bool = Field(False, alias="DEBUG_MODE")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class BotConfig:
    """Master configuration class that aggregates all config sections."""

    def __init__(self):
        self.chain = ChainConfig()
        self.wallet = WalletConfig()
        self.trading = TradingConfig()
        self.venues = VenueConfig()
        self.stream = StreamConfig()
        self.monitoring = MonitoringConfig()
        self.development = DevelopmentConfig()

    @property
    def is_paper_trading(self) -> bool:
        return self.development.paper_trading

    @property
    def is_debug(self) -> bool:
        return self.development.debug_mode


# Global config instance
_config: Optional[BotConfig] = None


def get_config() -> BotConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BotConfig()
    return _config


def reload_config() -> BotConfig:
    """Force reload configuration from environment."""
    global _config
    _config = BotConfig()
    return _config
