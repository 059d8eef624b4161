import pytest

from vestledger.core.ledger_exceptions import ArithmeticOverflowError
from vestledger.core.safe_math import (
    UINT256_MAX,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    require_uint,
)


def test_require_uint_bounds():
    assert require_uint(0) == 0
    assert require_uint(UINT256_MAX) == UINT256_MAX
    for bad in (-1, UINT256_MAX + 1, 1.0, "1", True, None):
        with pytest.raises(ArithmeticOverflowError):
            require_uint(bad)


def test_checked_ops():
    assert checked_add(2, 3) == 5
    assert checked_sub(5, 3) == 2
    assert checked_mul(4, 5) == 20
    assert checked_div(7, 2) == 3


def test_overflow_and_underflow():
    with pytest.raises(ArithmeticOverflowError):
        checked_add(UINT256_MAX, 1)
    with pytest.raises(ArithmeticOverflowError):
        checked_sub(1, 2)
    with pytest.raises(ArithmeticOverflowError):
        checked_mul(2**200, 2**100)
    with pytest.raises(ArithmeticOverflowError):
        checked_div(1, 0)
