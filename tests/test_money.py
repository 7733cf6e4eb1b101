"""Tests for money coercion and the clamp policy."""

from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from budget_ledger.money import (
    CLAMP_NON_NEGATIVE,
    ClampNonNegative,
    ZERO,
    approx_equal,
    quantize,
    to_money,
)

amounts = st.decimals(min_value=-10**9, max_value=10**9, places=2, allow_nan=False, allow_infinity=False)


class TestToMoney:
    """Test coercion of stored and user-supplied values."""

    def test_missing_values_read_as_zero(self):
        assert to_money(None) == ZERO
        assert to_money("") == ZERO

    def test_float_keeps_decimal_representation(self):
        """0.1 must not become its binary expansion."""
        assert to_money(0.1) == Decimal("0.1")

    def test_strings_and_ints(self):
        assert to_money("1250.50") == Decimal("1250.50")
        assert to_money(7) == Decimal("7")

    def test_invalid_value_raises(self):
        with pytest.raises(ValueError, match="Invalid monetary value"):
            to_money("twelve")

    def test_quantize_rounds_half_up(self):
        assert quantize(Decimal("10.005")) == Decimal("10.01")
        assert quantize(Decimal("10.004")) == Decimal("10.00")

    def test_approx_equal(self):
        assert approx_equal(Decimal("600"), Decimal("600.0000005"))
        assert not approx_equal(Decimal("600"), Decimal("600.01"))


class TestClampNonNegative:
    """Test the clamp-at-zero balance policy."""

    def test_decrease_within_balance(self):
        assert CLAMP_NON_NEGATIVE.apply(Decimal("500"), Decimal("-200")) == Decimal("300")
        assert CLAMP_NON_NEGATIVE.clamped(Decimal("500"), Decimal("-200")) is False

    def test_over_release_clamps_at_zero(self):
        assert CLAMP_NON_NEGATIVE.apply(Decimal("200"), Decimal("-360")) == ZERO
        assert CLAMP_NON_NEGATIVE.clamped(Decimal("200"), Decimal("-360")) is True

    def test_custom_floor(self):
        policy = ClampNonNegative(floor=Decimal("10"))
        assert policy.apply(Decimal("15"), Decimal("-20")) == Decimal("10")

    @given(current=amounts.filter(lambda d: d >= 0), delta=amounts)
    def test_never_negative(self, current, delta):
        """No input magnitude takes a balance below zero."""
        assert CLAMP_NON_NEGATIVE.apply(current, delta) >= ZERO
