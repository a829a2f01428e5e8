"""
Tests for sqrtPriceX96 normalization.
"""

from decimal import Decimal
from fractions import Fraction

import pytest

from arbitrator.dex.pricing import (
    Q96,
    classify_liquidity,
    normalize_price,
    price_to_sqrt_price_x96,
)
from arbitrator.exceptions import NormalizationError
from arbitrator.models import LiquidityStatus


class TestNormalizePrice:
    """Tests for normalize_price."""

    def test_unit_price_with_equal_decimals(self):
        assert normalize_price(Q96, 18, 18) == Decimal(1)

    def test_squares_the_root(self):
        assert normalize_price(2 * Q96, 18, 18) == Decimal(4)
        assert normalize_price(Q96 // 2, 18, 18) == Decimal("0.25")

    def test_decimal_adjustment_uses_base_minus_quote(self):
        # A raw ratio of 1 between an 18-decimal base and a 6-decimal quote
        # means one whole base token is worth 10**12 whole quote tokens
        assert normalize_price(Q96, 18, 6) == Decimal(10) ** 12
        assert normalize_price(Q96, 6, 18) == Decimal(10) ** -12

    def test_full_width_input_keeps_precision(self):
        sqrt_price = 2**160 - 1
        expected = Fraction(sqrt_price * sqrt_price, Q96 * Q96) * Fraction(10) ** (8 - 18)

        price = normalize_price(sqrt_price, 8, 18)

        error = abs(Fraction(price) - expected) / expected
        assert error < Fraction(1, 10**60)

    def test_zero_is_rejected(self):
        with pytest.raises(NormalizationError):
            normalize_price(0, 18, 18)

    def test_negative_is_rejected(self):
        with pytest.raises(NormalizationError):
            normalize_price(-Q96, 18, 18)

    @pytest.mark.parametrize("value", [1.5, "79228162514264337593543950336", True, None])
    def test_non_integer_is_rejected(self, value):
        with pytest.raises(NormalizationError):
            normalize_price(value, 18, 18)

    def test_normalization_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            normalize_price(0, 18, 18)


class TestRoundTrip:
    """Building a sqrtPriceX96 from a price and normalizing it back."""

    @pytest.mark.parametrize(
        "price,base_decimals,quote_decimals",
        [
            ("100", 18, 18),
            ("0.0016523", 18, 18),
            ("3150.42", 18, 6),
            ("17.8934", 8, 18),
        ],
    )
    def test_reproduces_price(self, price, base_decimals, quote_decimals):
        original = Decimal(price)

        sqrt_price = price_to_sqrt_price_x96(original, base_decimals, quote_decimals)
        restored = normalize_price(sqrt_price, base_decimals, quote_decimals)

        assert abs(restored - original) / original < Decimal("1e-9")

    def test_inverse_rejects_non_positive_price(self):
        with pytest.raises(NormalizationError):
            price_to_sqrt_price_x96(Decimal(0), 18, 18)


class TestClassifyLiquidity:
    """Tests for classify_liquidity."""

    def test_below_threshold_is_low(self):
        assert classify_liquidity(999, 1000) == LiquidityStatus.LOW

    def test_at_threshold_is_high(self):
        assert classify_liquidity(1000, 1000) == LiquidityStatus.HIGH
