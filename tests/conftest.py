"""
Pytest configuration and shared fixtures.
"""

import os
from decimal import Decimal

import pytest

# Set test environment
os.environ["PAPER_TRADING"] = "true"
os.environ["DEBUG_MODE"] = "true"
os.environ["ACTIVE_CHAIN"] = "BscMainnet"
os.environ["ACTIVE_SYMBOL"] = "USDT/WBNB"
os.environ["WALLET_PRIVATE_KEY"] = ""
os.environ["STREAM_RECONNECT_ATTEMPTS"] = "0"

from arbitrator.models import OrderConfig

from helpers import FakeVenue


@pytest.fixture
def order_config():
    """Order parameters matching the documented worked examples."""
    return OrderConfig(
        notional_amount=Decimal("100"),
        profit_threshold=Decimal("4.0"),
        slippage_buffer=Decimal("0.001"),
        fixed_execution_cost=Decimal("0.0001"),
        active_symbol="USDT/WBNB",
    )


@pytest.fixture
def venue_a():
    """Uniswap-like venue with a 0.3% fee."""
    return FakeVenue("VenueA", Decimal("0.003"))


@pytest.fixture
def venue_b():
    """PancakeSwap-like venue with a 0.25% fee."""
    return FakeVenue("VenueB", Decimal("0.0025"))


@pytest.fixture
def mock_config():
    """Provide the loaded configuration."""
    from arbitrator.config import get_config
    return get_config()
