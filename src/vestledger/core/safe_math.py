"""
Checked uint256 arithmetic.

Token amounts and timestamps are unsigned 256-bit integers. Python ints never
wrap, so these helpers reject results outside [0, UINT256_MAX] instead of
silently carrying values no on-chain ledger could hold.
"""

from __future__ import annotations

from .ledger_exceptions import ArithmeticOverflowError

UINT256_MAX = 2**256 - 1


def require_uint(value: int, name: str = "value") -> int:
    """Validate that value is an int in the uint256 range and return it."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ArithmeticOverflowError(
            f"{name} must be an integer, got {type(value).__name__}",
            details={"field": name, "value": repr(value)},
        )
    if value < 0 or value > UINT256_MAX:
        raise ArithmeticOverflowError(
            f"{name} out of uint256 range: {value}",
            details={"field": name, "value": value},
        )
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > UINT256_MAX:
        raise ArithmeticOverflowError(
            "uint256 addition overflow", details={"a": a, "b": b}
        )
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticOverflowError(
            "uint256 subtraction underflow", details={"a": a, "b": b}
        )
    return a - b


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > UINT256_MAX:
        raise ArithmeticOverflowError(
            "uint256 multiplication overflow", details={"a": a, "b": b}
        )
    return result


def checked_div(a: int, b: int) -> int:
    """Floor division; rejects a zero divisor."""
    if b == 0:
        raise ArithmeticOverflowError("uint256 division by zero", details={"a": a})
    return a // b
