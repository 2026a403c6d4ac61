"""Unit tests for exact-integer fixed-point helpers."""
from __future__ import annotations

import pytest

from uspd_readmodel.exceptions import ArithmeticOverflow
from uspd_readmodel.fixed_point import (
    BPS_DENOMINATOR,
    WAD,
    apply_conversion_factor,
    check_uint256,
    ratio_bps,
    scale_by_basis_points,
    scale_by_price,
)
from uspd_readmodel.models import MAX_UINT256


class TestCheckUint256:
    def test_accepts_bounds(self) -> None:
        assert check_uint256(0) == 0
        assert check_uint256(MAX_UINT256) == MAX_UINT256

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError, match="unsigned"):
            check_uint256(-1, "amount")

    def test_overflow_rejected(self) -> None:
        with pytest.raises(ArithmeticOverflow):
            check_uint256(MAX_UINT256 + 1)

    def test_overflow_is_arithmetic_error(self) -> None:
        with pytest.raises(ArithmeticError):
            check_uint256(2**256)


class TestScaleByBasisPoints:
    def test_half(self) -> None:
        assert scale_by_basis_points(10**18, 5_000) == 5 * 10**17

    def test_rounds_down(self) -> None:
        assert scale_by_basis_points(3, 5_000) == 1

    def test_large_intermediate_is_exact(self) -> None:
        # amount * bps exceeds uint256 but the result does not.
        assert scale_by_basis_points(MAX_UINT256, 5_000) == MAX_UINT256 // 2

    def test_result_overflow(self) -> None:
        with pytest.raises(ArithmeticOverflow):
            scale_by_basis_points(MAX_UINT256, 20_000)

    @pytest.mark.parametrize(
        "bps", [1, 2, 4, 5, 8, 10, 16, 20, 25, 40, 50, 80, 100, 125, 200, 250, 400, 500,
                625, 1_000, 1_250, 2_000, 2_500, 5_000, 10_000]
    )
    @pytest.mark.parametrize("amount", [0, 1, 9_999, 10**18 + 7, 123_456_789_123_456_789])
    def test_inverse_scaling_loses_less_than_one_step(self, amount: int, bps: int) -> None:
        # Scaling by bps and then by its inverse floors to a multiple of 10000 / bps.
        inverse = BPS_DENOMINATOR * BPS_DENOMINATOR // bps
        back = scale_by_basis_points(scale_by_basis_points(amount, bps), inverse)
        step = BPS_DENOMINATOR // bps
        assert back == amount // step * step
        assert 0 <= amount - back < step

    def test_full_scale_round_trip_is_exact(self) -> None:
        amount = 987_654_321_987_654_321
        assert scale_by_basis_points(amount, BPS_DENOMINATOR) == amount


class TestScaleByPrice:
    def test_two_eth_at_2000(self) -> None:
        assert scale_by_price(2 * 10**18, 2000 * 10**8, 8, 18) == 4000 * 10**18

    def test_output_decimals(self) -> None:
        assert scale_by_price(10**18, 2000 * 10**8, 8, 6) == 2000 * 10**6

    def test_18_decimal_price(self) -> None:
        assert scale_by_price(10**18, 2500 * 10**18, 18) == 2500 * 10**18

    def test_zero_amount(self) -> None:
        assert scale_by_price(0, 2000 * 10**8, 8) == 0

    def test_negative_decimals_rejected(self) -> None:
        with pytest.raises(ValueError):
            scale_by_price(1, 1, -1)

    def test_overflow(self) -> None:
        with pytest.raises(ArithmeticOverflow):
            scale_by_price(MAX_UINT256, MAX_UINT256, 0, 18, 0)


class TestApplyConversionFactor:
    def test_unit_factor(self) -> None:
        assert apply_conversion_factor(5 * 10**18, WAD) == 5 * 10**18

    def test_yield_factor(self) -> None:
        assert apply_conversion_factor(10**18, 105 * 10**16) == 105 * 10**16

    def test_zero_factor(self) -> None:
        assert apply_conversion_factor(10**18, 0) == 0


class TestRatioBps:
    def test_150_percent(self) -> None:
        assert ratio_bps(3_000, 2_000) == 15_000

    def test_rounds_down(self) -> None:
        assert ratio_bps(1, 3) == 3_333

    def test_zero_reference(self) -> None:
        with pytest.raises(ZeroDivisionError):
            ratio_bps(1, 0)
