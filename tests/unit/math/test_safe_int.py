"""Tests for SafeInt checked arithmetic wrapper."""

import pytest

from market.safe_int import (
    UINT128_MAX,
    UINT256_MAX,
    DivisionByZero,
    Overflow,
    S,
    SafeInt,
    SafeIntError,
    Underflow,
)


class TestSafeIntConstruction:
    """Tests for SafeInt construction."""

    def test_from_int(self):
        """SafeInt can be constructed from int."""
        assert SafeInt(42).value == 42

    def test_from_safeint(self):
        """SafeInt can be constructed from another SafeInt."""
        assert SafeInt(SafeInt(42)).value == 42

    def test_from_negative_raises(self):
        """Book amounts are unsigned, so negative values are rejected."""
        with pytest.raises(Underflow):
            SafeInt(-1)

    def test_above_uint256_raises(self):
        """Values beyond the ledger word size are rejected."""
        SafeInt(UINT256_MAX)
        with pytest.raises(Overflow):
            SafeInt(UINT256_MAX + 1)

    def test_from_invalid_type_raises(self):
        """SafeInt rejects strings, floats and bools."""
        with pytest.raises(TypeError):
            SafeInt("42")  # type: ignore
        with pytest.raises(TypeError):
            SafeInt(3.14)  # type: ignore
        with pytest.raises(TypeError):
            SafeInt(True)

    def test_alias_and_zero(self):
        """S is an alias for SafeInt and zero() builds 0."""
        assert S is SafeInt
        assert SafeInt.zero().value == 0


class TestSafeIntArithmetic:
    """Tests for SafeInt arithmetic operations."""

    def test_add(self):
        """Addition works with SafeInt and int on either side."""
        assert (S(10) + S(5)).value == 15
        assert (S(10) + 5).value == 15
        assert (5 + S(10)).value == 15

    def test_add_overflow_raises(self):
        """Addition past uint256 raises Overflow."""
        with pytest.raises(Overflow):
            S(UINT256_MAX) + 1

    def test_sub(self):
        """Subtraction with a non-negative result works."""
        assert (S(10) - S(3)).value == 7
        assert (10 - S(3)).value == 7
        assert (S(5) - 5).value == 0

    def test_sub_underflow_raises(self):
        """Subtraction underflow raises Underflow with both operands in the message."""
        with pytest.raises(Underflow) as exc_info:
            S(5) - S(10)
        assert "5 - 10" in str(exc_info.value)

    def test_rsub_underflow_raises(self):
        """Reverse subtraction underflow raises Underflow."""
        with pytest.raises(Underflow):
            5 - S(10)

    def test_mul_overflow_raises(self):
        """Products beyond uint256 raise Overflow."""
        assert (S(2**128) * (2**127)).value == 2**255
        with pytest.raises(Overflow):
            S(2**128) * (2**128)

    def test_floordiv(self):
        """Floor division works correctly."""
        assert (S(10) // S(3)).value == 3
        assert (10 // S(3)).value == 3

    def test_floordiv_by_zero_raises(self):
        """Division by zero raises DivisionByZero."""
        with pytest.raises(DivisionByZero) as exc_info:
            S(10) // 0
        assert "Division by zero" in str(exc_info.value)
        with pytest.raises(DivisionByZero):
            10 // S(0)

    def test_errors_are_arithmetic_errors(self):
        """All SafeInt failures share a base derived from ArithmeticError."""
        assert issubclass(SafeIntError, ArithmeticError)
        for error in (Underflow, Overflow, DivisionByZero):
            assert issubclass(error, SafeIntError)


class TestSafeIntComparison:
    """Tests for comparisons and conversions."""

    def test_comparisons_with_int(self):
        """SafeInt compares against ints and SafeInts alike."""
        assert S(5) == 5
        assert S(5) != S(6)
        assert S(5) < 6
        assert S(5) <= S(5)
        assert S(7) > 6
        assert S(7) >= S(7)

    def test_min(self):
        """min() returns the smaller operand as SafeInt."""
        assert S(5).min(3).value == 3
        assert S(2).min(S(3)).value == 2

    def test_bool_and_index(self):
        """SafeInt acts as an integer in boolean and index contexts."""
        assert not S(0)
        assert S(1)
        assert [10, 20, 30][S(1)] == 20

    def test_to_uint128(self):
        """to_uint128 enforces the offer amount bound."""
        assert S(UINT128_MAX).to_uint128() == UINT128_MAX
        with pytest.raises(Overflow):
            S(UINT128_MAX + 1).to_uint128()
