"""Tests for checked uint256 arithmetic."""

import pytest

from core.exceptions import ArithmeticOverflow, ArithmeticUnderflow, DivisionByZero
from services import safe_math
from services.safe_math import UINT256_MAX


class TestSafeMath:

    def test_add_within_range(self):
        assert safe_math.add(2, 3) == 5
        assert safe_math.add(UINT256_MAX - 1, 1) == UINT256_MAX

    def test_add_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            safe_math.add(UINT256_MAX, 1)

    def test_sub_underflow(self):
        assert safe_math.sub(5, 5) == 0
        with pytest.raises(ArithmeticUnderflow):
            safe_math.sub(4, 5)

    def test_mul_overflow(self):
        assert safe_math.mul(1 << 128, (1 << 128) - 1) < UINT256_MAX
        with pytest.raises(ArithmeticOverflow):
            safe_math.mul(1 << 128, 1 << 128)

    def test_div_floors(self):
        assert safe_math.div(7, 2) == 3
        assert safe_math.div(1, 3) == 0

    def test_div_by_zero(self):
        with pytest.raises(DivisionByZero):
            safe_math.div(1, 0)

    def test_pow(self):
        assert safe_math.pow_(2, 255) == 1 << 255
        assert safe_math.pow_(10, 0) == 1
        with pytest.raises(ArithmeticOverflow):
            safe_math.pow_(2, 256)
        with pytest.raises(ArithmeticOverflow):
            safe_math.pow_(10, 10 ** 9)

    def test_sqrt_floor(self):
        assert safe_math.sqrt(0) == 0
        assert safe_math.sqrt(15) == 3
        assert safe_math.sqrt(16) == 4

    def test_percent_of_multiplies_first(self):
        # 1010 * 1 / 100 = 10 (dividing first would give 0 for 1% of 99)
        assert safe_math.percent_of(1010, 1) == 10
        assert safe_math.percent_of(99, 1) == 0
        assert safe_math.percent_of(2010, 70) == 1407
