"""
Conversion between a pool's fixed-point square-root price and a
human-readable quote-per-base decimal price.
"""

from decimal import Decimal, localcontext
from typing import Union

from arbitrator.exceptions import NormalizationError
from arbitrator.models import LiquidityStatus

Q96 = 2**96

# sqrtPriceX96 is a uint160; squaring it needs ~100 significant digits
PRICE_PRECISION = 100


def normalize_price(
    sqrt_price_x96: int, base_decimals: int, quote_decimals: int
) -> Decimal:
    """
    Convert a V3 pool's sqrtPriceX96 into a quote-per-base decimal price.

    The pool stores sqrt(quote_raw / base_raw) * 2**96. The raw ratio is
    recovered in arbitrary precision and then rescaled by
    10 ** (base_decimals - quote_decimals) into whole-token units.

    Raises:
        NormalizationError: if the input is not a positive integer.
    """
    if isinstance(sqrt_price_x96, bool) or not isinstance(sqrt_price_x96, int):
        raise NormalizationError(
            f"sqrtPriceX96 must be an integer, got {type(sqrt_price_x96).__name__}"
        )
    if sqrt_price_x96 <= 0:
        raise NormalizationError(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        sqrt_price = Decimal(sqrt_price_x96) / Decimal(Q96)
        raw_price = sqrt_price * sqrt_price
        adjusted = raw_price.scaleb(base_decimals - quote_decimals)
    return adjusted


def price_to_sqrt_price_x96(
    price: Union[Decimal, str, int], base_decimals: int, quote_decimals: int
) -> int:
    """Inverse of normalize_price, rounded to the nearest representable value."""
    price = Decimal(price)
    if price <= 0:
        raise NormalizationError(f"price must be positive, got {price}")

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        raw_price = price.scaleb(quote_decimals - base_decimals)
        sqrt_price_x96 = raw_price.sqrt() * Decimal(Q96)
        return int(sqrt_price_x96.to_integral_value())


def classify_liquidity(liquidity: int, low_threshold: int) -> LiquidityStatus:
    """Flag a pool as LOW when its in-range liquidity is under the threshold."""
    if liquidity < low_threshold:
        return LiquidityStatus.LOW
    return LiquidityStatus.HIGH
