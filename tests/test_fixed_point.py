"""Tests for the Q16.16 format and the handshake primitives."""

import numpy as np
import pytest

from fpbs.core.fixed_point import (
    MAX_RAW,
    MIN_RAW,
    ONE,
    FixedPoint,
    FixedPointRangeError,
    div_with_flag,
    from_real,
    from_real_array,
    fx_div,
    fx_mul,
    mul_with_flag,
    to_hex,
    to_real,
    to_real_array,
    wrap,
)
from fpbs.core.handshake import UnitHandshake, rising_edge
from fpbs.units.divider import DividerState
from fpbs.units.price_combiner import PriceCombinerState


class TestConversions:
    def test_round_trip_within_half_lsb(self):
        values = np.linspace(-1000.0, 1000.0, 2001) + 1.0 / 3.0
        for v in values:
            assert abs(to_real(from_real(v)) - v) <= 0.5 / ONE

    def test_known_words(self):
        assert from_real(1.0) == 0x00010000
        assert FixedPoint.from_real(1.5).hex == "0x00018000"
        assert FixedPoint.from_real(-1.0).hex == "0xFFFF0000"
        assert FixedPoint.from_hex("0xFFFF0000").real == -1.0
        assert float(FixedPoint.from_hex("0x00008000")) == 0.5

    def test_saturates_out_of_range(self):
        assert from_real(1e6) == MAX_RAW
        assert from_real(-1e6) == MIN_RAW
        assert from_real(float("inf")) == MAX_RAW
        assert from_real(float("-inf")) == MIN_RAW

    def test_strict_raises(self):
        with pytest.raises(FixedPointRangeError):
            from_real(40000.0, strict=True)
        with pytest.raises(FixedPointRangeError):
            FixedPoint.from_real(float("inf"), strict=True)

    def test_nan_always_raises(self):
        with pytest.raises(FixedPointRangeError):
            from_real(float("nan"))
        with pytest.raises(FixedPointRangeError):
            from_real_array([0.0, float("nan")])

    def test_range_error_is_value_error(self):
        with pytest.raises(ValueError):
            FixedPoint(MAX_RAW + 1)

    def test_hex_wider_than_word(self):
        with pytest.raises(FixedPointRangeError):
            FixedPoint.from_hex("0x100000000")

    def test_wrap(self):
        assert wrap(0xFFFFFFFF) == -1
        assert wrap(MAX_RAW + 1) == MIN_RAW
        assert to_hex(-1) == "0xFFFFFFFF"

    def test_arrays(self):
        raws = from_real_array([0.5, -1.0, 1e9])
        np.testing.assert_array_equal(raws, [32768, -65536, MAX_RAW])
        np.testing.assert_allclose(to_real_array([ONE, -ONE // 4]), [1.0, -0.25])


class TestArithmetic:
    def test_mul(self):
        assert fx_mul(2 * ONE, 3 * ONE) == 6 * ONE
        assert fx_mul(ONE // 2, -ONE) == -ONE // 2

    def test_mul_saturation_flag(self):
        product, saturated = mul_with_flag(from_real(300.0), from_real(300.0))
        assert saturated
        assert product == MAX_RAW

    def test_div_rounds_to_nearest(self):
        assert fx_div(ONE, 3 * ONE) == 21845
        assert fx_div(2 * ONE, 3 * ONE) == 43691
        assert fx_div(-3 * ONE, 2 * ONE) == from_real(-1.5)

    def test_div_by_zero_saturates_toward_dividend_sign(self):
        assert div_with_flag(ONE, 0) == (MAX_RAW, True)
        assert div_with_flag(-ONE, 0) == (MIN_RAW, True)


class TestHandshake:
    def test_rising_edge(self):
        assert rising_edge(False, True)
        assert not rising_edge(True, True)
        assert not rising_edge(False, False)
        assert not rising_edge(True, False)

    def test_idle_unit(self):
        assert UnitHandshake.of(DividerState()) == UnitHandshake(busy=False, done=False, valid=False)

    def test_unit_without_done_line_reports_valid(self):
        hs = UnitHandshake.of(PriceCombinerState(price_valid=True))
        assert hs.done and hs.valid
