"""
Checked uint256 arithmetic.

Every helper raises an ArithmeticFault subclass instead of wrapping or
going negative, so the enclosing @transactional operation rolls back.
"""
import math

from core.exceptions import ArithmeticOverflow, ArithmeticUnderflow, DivisionByZero

UINT256_MAX = (1 << 256) - 1


def _check(value: int) -> int:
    if value < 0:
        raise ArithmeticUnderflow(f"uint256 underflow: {value}")
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"uint256 overflow: {value}")
    return value


def add(a: int, b: int) -> int:
    return _check(a + b)


def sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticUnderflow(f"uint256 underflow: {a} - {b}")
    return a - b


def mul(a: int, b: int) -> int:
    return _check(a * b)


def div(a: int, b: int) -> int:
    """Floor division; b == 0 is a fault, not zero."""
    if b == 0:
        raise DivisionByZero(f"division by zero: {a} / 0")
    return a // b


def pow_(base: int, exponent: int) -> int:
    # 先用 bit_length 估算，避免算出巨大的中間值
    if base > 1 and exponent * (base.bit_length() - 1) > 256:
        raise ArithmeticOverflow(f"uint256 overflow: {base} ** {exponent}")
    return _check(base ** exponent)


def sqrt(a: int) -> int:
    """Integer square root (floor)."""
    return math.isqrt(_check(a))


def percent_of(amount: int, percent: int) -> int:
    """amount * percent / 100, multiplying before dividing."""
    return div(mul(amount, percent), 100)
