"""
Exception hierarchy for the DEX Arbitrator.
"""


class ArbitratorError(Exception):
    """Base class for all arbitrator errors."""


class ConfigurationError(ArbitratorError):
    """Invalid trading or runtime configuration."""


class NormalizationError(ArbitratorError, ValueError):
    """A raw pool price could not be turned into a usable decimal price."""


class PoolNotFoundError(ArbitratorError, KeyError):
    """No pool is registered for the requested venue, symbol and network."""

    def __init__(self, venue: str, symbol: str, network: str):
        self.venue = venue
        self.symbol = symbol
        self.network = network
        super().__init__(f"no {venue} pool for {symbol} on {network}")

    def __str__(self) -> str:
        return self.args[0]


class ChainConnectionError(ArbitratorError):
    """The blockchain node could not be reached or dropped the connection."""


class StreamError(ArbitratorError):
    """A venue price stream failed upstream."""


class TradeExecutionError(ArbitratorError):
    """A buy or sell swap could not be built, signed or broadcast."""

    def __init__(self, venue: str, side: str, message: str):
        self.venue = venue
        self.side = side
        super().__init__(f"{venue} {side} failed: {message}")


class WalletError(ArbitratorError):
    """A balance read or token approval against the node failed."""
