"""
Tests for curve math and the fixed-point power primitive.

Expected values are worked by hand with IdentityPower, which reduces
votes_minted to available // decimals.
"""

import pytest

from stakerank.curation.curve import (
    UINT256_MAX,
    check_invariants,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    curve_at,
    diluted_balance,
    downvote_cost,
)
from stakerank.curation.errors import CurveArithmeticError, InvariantViolationError
from stakerank.curation.models import CurveParameters, Entry, entry_id
from stakerank.curation.power import MAX_PRECISION, DecimalPower

from .helpers import IdentityPower


def _entry(**kwargs) -> Entry:
    return Entry(owner="alice", entry_id=entry_id("a"), **kwargs)


class TestCheckedArithmetic:
    """Tests for the 256-bit checked helpers."""

    def test_in_range(self):
        assert checked_add(2, 3) == 5
        assert checked_sub(5, 3) == 2
        assert checked_mul(4, 5) == 20
        assert checked_div(7, 2) == 3

    def test_sub_underflow(self):
        with pytest.raises(CurveArithmeticError, match="underflow"):
            checked_sub(1, 2)

    def test_add_overflow(self):
        with pytest.raises(CurveArithmeticError, match="overflow"):
            checked_add(UINT256_MAX, 1)

    def test_mul_overflow(self):
        with pytest.raises(CurveArithmeticError, match="overflow"):
            checked_mul(2**200, 2**57)

    @pytest.mark.parametrize("divisor", [0, -1])
    def test_div_non_positive(self, divisor):
        with pytest.raises(CurveArithmeticError, match="non-positive"):
            checked_div(10, divisor)


class TestDecimalPower:
    """Tests for DecimalPower."""

    def test_integer_power(self):
        mantissa, shift = DecimalPower().power(2, 1, 3, 1)
        assert mantissa >> shift == 8

    def test_fractional_exponent(self):
        """1000 ** (1/3) is 10 up to rounding."""
        mantissa, shift = DecimalPower().power(1000, 1, 1, 3)
        assert (mantissa >> shift) in (9, 10)
        assert abs(mantissa / 2**shift - 10) < 1e-9

    def test_zero_base(self):
        assert DecimalPower().power(0, 1, 5, 3) == (0, MAX_PRECISION)

    def test_precision_is_maximal_for_small_results(self):
        _, shift = DecimalPower().power(3, 2, 1, 1)
        assert shift == MAX_PRECISION

    @pytest.mark.parametrize("args", [(1, 0, 1, 1), (1, 1, 1, 0), (1, -1, 1, 1)])
    def test_reject_non_positive_denominator(self, args):
        with pytest.raises(CurveArithmeticError, match="denominators"):
            DecimalPower().power(*args)

    def test_reject_negative_operand(self):
        with pytest.raises(CurveArithmeticError, match="non-negative"):
            DecimalPower().power(-1, 1, 1, 1)

    def test_overflow(self):
        with pytest.raises(CurveArithmeticError, match="overflows"):
            DecimalPower().power(2**200, 1, 2, 1)

    def test_reject_low_precision(self):
        with pytest.raises(ValueError):
            DecimalPower(digits=40)


class TestCurve:
    """Tests for curve_at / diluted_balance / downvote_cost."""

    @pytest.fixture
    def small(self):
        return CurveParameters(total=1_000_000, ceiling=100_000, decimals=1_000_000)

    def test_curve_at(self, small):
        point = curve_at(small, IdentityPower(), 10_000)
        assert point.rate == 900_000
        assert point.available == 9_000_000_000
        assert point.votes_minted == 9_000

    def test_curve_at_zero_balance(self, small):
        point = curve_at(small, IdentityPower(), 0)
        assert point.rate == 1_000_000
        assert point.available == 0
        assert point.votes_minted == 0

    def test_curve_at_max_balance(self, small):
        """Rate reaches zero at max."""
        with pytest.raises(CurveArithmeticError):
            curve_at(small, IdentityPower(), small.max)

    def test_curve_at_decimal_power(self, params):
        point = curve_at(params, DecimalPower(), 1_000)
        assert point.rate == 999_510
        assert point.available == 999_510_000
        assert 999 <= point.votes_minted <= 1_010

    def test_curve_at_overflow(self, params):
        """Large stakes push the power result past 256 bits."""
        with pytest.raises(CurveArithmeticError):
            curve_at(params, DecimalPower(), 1_990_000)

    def test_no_dilution_without_votes(self, small):
        point = curve_at(small, IdentityPower(), 10_000)
        assert diluted_balance(point, 0, small.decimals) == 10_000

    def test_dilution(self, small):
        point = curve_at(small, IdentityPower(), 20_000)
        assert diluted_balance(point, 90, small.decimals) == 19_928

    def test_dilution_with_zero_minted_votes(self, small):
        point = curve_at(small, IdentityPower(), 0)
        with pytest.raises(CurveArithmeticError):
            diluted_balance(point, 1, small.decimals)

    def test_downvote_cost(self):
        entry = _entry(
            balance=10_000,
            rate=900_000,
            available=9_000_000_000,
            votes_minted=9_000,
            effective_balance=10_000,
        )
        assert tuple(downvote_cost(entry, 1_000_000)) == (100, 90, 90)

    def test_downvote_cost_headroom_exhausted(self):
        entry = _entry(
            balance=10_000,
            rate=900_000,
            available=9_000_000_000,
            votes_minted=9_000,
            votes_cast=8_950,
            effective_balance=10_000,
        )
        with pytest.raises(CurveArithmeticError, match="headroom"):
            downvote_cost(entry, 1_000_000)

    def test_downvote_cost_drained_entry(self):
        """A drained entry has no available stake to divide by."""
        entry = _entry(rate=1_000_000)
        with pytest.raises(CurveArithmeticError):
            downvote_cost(entry, 1_000_000)


class TestInvariants:
    """Tests for check_invariants."""

    @pytest.fixture
    def small(self):
        return CurveParameters(total=1_000_000, ceiling=100_000, decimals=1_000_000)

    def test_valid(self, small):
        check_invariants(_entry(balance=10, votes_minted=5, votes_cast=5, effective_balance=10), small)

    def test_votes_cast_above_minted(self, small):
        with pytest.raises(InvariantViolationError, match="votes_cast"):
            check_invariants(_entry(balance=10, votes_minted=5, votes_cast=6), small)

    def test_effective_above_balance(self, small):
        with pytest.raises(InvariantViolationError, match="effective_balance"):
            check_invariants(_entry(balance=10, effective_balance=11), small)

    def test_balance_at_safe_max(self, small):
        with pytest.raises(InvariantViolationError, match="safe_max"):
            check_invariants(_entry(balance=small.safe_max), small)

    def test_is_arithmetic_error(self, small):
        with pytest.raises(CurveArithmeticError):
            check_invariants(_entry(balance=10, effective_balance=11), small)
